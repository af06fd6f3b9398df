from geocell_analyst.cli import main

raise SystemExit(main())
