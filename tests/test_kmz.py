import tempfile
import unittest
import xml.etree.ElementTree as ET
import zipfile
from datetime import date
from pathlib import Path

from shapely.geometry import Point, Polygon

from geocell_analyst import kmz
from geocell_analyst.models import Cell, CellPolygon, CsvData, Location, MccMnc

NS = "{http://www.opengis.net/kml/2.2}"


def make_cell(cell_id=1, cgi="268-06-8840-8453", lon=-9.1, lat=38.7, **kwargs):
    fields = dict(
        id=cell_id,
        lac_tac="8840",
        technology=4,
        direction=90,
        created=date(2024, 1, 1),
        modified=date(2024, 3, 1),
        cgi=cgi,
        location=Location(id=cell_id, coordinates=Point(lon, lat)),
    )
    fields.update(kwargs)
    return Cell(**fields)


def square(cell_id, lon=-9.1, lat=38.7):
    return CellPolygon(
        id=cell_id,
        cell_id=cell_id,
        polygon=Polygon([(lon, lat), (lon + 0.01, lat), (lon + 0.01, lat + 0.01), (lon, lat)]),
    )


class KmzTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.out = Path(self._tmp.name) / "out.kmz"

    def tearDown(self):
        self._tmp.cleanup()

    def read_kml(self):
        with zipfile.ZipFile(self.out) as archive:
            self.assertEqual(archive.namelist(), ["doc.kml"])
            return ET.fromstring(archive.read("doc.kml"))

    @staticmethod
    def names(root, tag):
        return [el.find(f"{NS}name").text for el in root.iter(f"{NS}{tag}")]

    @staticmethod
    def texts(root, tag):
        return [el.text for el in root.iter(f"{NS}{tag}")]

    @staticmethod
    def placemark(root, name):
        for pm in root.iter(f"{NS}Placemark"):
            if pm.find(f"{NS}name").text == name:
                return pm
        raise AssertionError(f"no placemark named {name!r}")


class GroupedExportTests(KmzTestCase):
    def test_csv_row_end_to_end(self):
        cell = make_cell()
        kmz.generate_kmz(
            {"268-06-8840-8453": cell},
            {1: [square(1)]},
            {"268-06-8840-8453": "2025/04/26 00:02:34"},
            {"268-06-8840-8453": CsvData(color="ff0000ff", target="coverage", notes="test")},
            self.out,
        )

        root = self.read_kml()
        self.assertEqual(self.names(root, "Folder"), ["2025/04/26", "Points", "Polygons"])
        self.assertEqual(self.names(root, "Placemark"), ["00:02:34", "00:02:34 - Polygon"])

        description = self.placemark(root, "00:02:34").find(f"{NS}description").text
        self.assertIn("Target: coverage", description)
        self.assertIn("Notes: test", description)
        self.assertIn("Timestamp: 2025/04/26 00:02:34", description)
        self.assertIn("CGI: 268-06-8840-8453", description)
        self.assertIn("Technology: 4G", description)
        self.assertIn("Direction: 90°", description)

        icon_colors = [el.find(f"{NS}color").text for el in root.iter(f"{NS}IconStyle")]
        self.assertEqual(icon_colors, ["ff0000ff"])
        self.assertIn("270", self.texts(root, "heading"))
        self.assertIn(kmz.ICON_HREF, self.texts(root, "href"))
        poly_colors = [el.find(f"{NS}color").text for el in root.iter(f"{NS}PolyStyle")]
        self.assertEqual(poly_colors, ["4f0000ff"])

        coordinates = [t.strip() for t in self.texts(root, "coordinates")]
        self.assertIn("-9.1,38.7,50.0", coordinates)
        self.assertIn("relativeToGround", self.texts(root, "altitudeMode"))
        self.assertIn("1", self.texts(root, "extrude"))

    def test_dates_ascend_and_entries_are_time_sorted(self):
        cells = {"A": make_cell(1, "A"), "B": make_cell(2, "B"), "C": make_cell(3, "C"), "D": make_cell(4, "D")}
        timestamps = {
            "A": "2025/04/27 08:00:00",
            "B": "2025/04/26 23:59:59",
            "C": "2025/04/26 00:00:01",
            "D": "",
        }

        groups = kmz.group_by_date(cells, timestamps)

        self.assertEqual([name for name, _ in groups], ["2025/04/26", "2025/04/27", kmz.UNDATED_FOLDER])
        self.assertEqual([label for _, _, label in groups[0][1]], ["00:00:01", "23:59:59"])
        self.assertEqual([key for key, _, _ in groups[2][1]], ["D"])

    def test_technology_color_when_csv_has_none(self):
        kmz.generate_kmz(
            {"A": make_cell(1, "A", technology=3)},
            {},
            {"A": "2025/04/26 12:00:00"},
            {"A": CsvData(color=None, target="t", notes="")},
            self.out,
        )
        root = self.read_kml()
        icon_colors = [el.find(f"{NS}color").text for el in root.iter(f"{NS}IconStyle")]
        self.assertEqual(icon_colors, ["ff00ff00"])

    def test_text_is_escaped(self):
        kmz.generate_kmz(
            {"A": make_cell(1, "A", name='A<B & "C"')},
            {},
            {"A": "2025/04/26 12:00:00"},
            {"A": CsvData(color="ff0000ff", target="<script>", notes="x & y")},
            self.out,
        )
        root = self.read_kml()
        description = self.placemark(root, "12:00:00").find(f"{NS}description").text
        self.assertIn('Name: A<B & "C"', description)
        self.assertIn("Target: <script>", description)
        self.assertIn("Notes: x & y", description)

    def test_cell_without_coordinates_still_gets_polygons(self):
        cell = make_cell(1, "A")
        cell.location = None
        kmz.generate_kmz({"A": cell}, {1: [square(1)]}, {"A": "2025/04/26 12:00:00"}, {}, self.out)
        root = self.read_kml()
        self.assertEqual(self.names(root, "Placemark"), ["12:00:00 - Polygon"])


class QueryResultExportTests(KmzTestCase):
    def test_empty_result_is_a_valid_kmz(self):
        kmz.generate_query_result_kmz([], {}, self.out)
        root = self.read_kml()
        self.assertEqual(self.names(root, "Folder"), ["Query Results", "Points", "Polygons"])
        self.assertEqual(list(root.iter(f"{NS}Placemark")), [])

    def test_document_starts_with_an_xml_declaration(self):
        kmz.generate_query_result_kmz([make_cell()], {}, self.out)
        with zipfile.ZipFile(self.out) as archive:
            document = archive.read("doc.kml").decode("utf-8")
        self.assertTrue(document.startswith('<?xml version="1.0" encoding="UTF-8"?>'))
        self.assertEqual(document.count("<?xml"), 1)

    def test_empty_grouped_export_is_a_valid_kmz(self):
        kmz.generate_kmz({}, {}, {}, {}, self.out)
        root = self.read_kml()
        self.assertEqual(self.names(root, "Folder"), ["Cells", "Points", "Polygons"])

    def test_flat_export_names_by_cgi_and_colors_by_operator(self):
        meo = make_cell(1, "268-06-1-1", mcc_mnc=MccMnc(mcc=268, mnc=6, operator="MEO SA", brand="MEO"))
        orphan = make_cell(7, None, lon=-9.0, direction=0)
        orphan.distance_from_reference = 1.234

        kmz.generate_query_result_kmz([meo, orphan], {}, self.out)

        root = self.read_kml()
        self.assertEqual(self.names(root, "Placemark"), ["268-06-1-1", "unknown-7"])
        icon_colors = [el.find(f"{NS}color").text for el in root.iter(f"{NS}IconStyle")]
        self.assertCountEqual(icon_colors, ["ffff0000", "ff00ff00"])
        description = self.placemark(root, "268-06-1-1").find(f"{NS}description").text
        self.assertIn("Brand: MEO", description)
        self.assertIn("MCC-MNC: 268-6", description)
        self.assertNotIn("Target:", description)
        orphan_description = self.placemark(root, "unknown-7").find(f"{NS}description").text
        self.assertIn("Distance: 1.23 km", orphan_description)

    def test_duplicate_keys_do_not_drop_cells(self):
        keyed = kmz.cells_by_key([make_cell(1, "A"), make_cell(2, "A"), make_cell(3, None)])
        self.assertEqual(list(keyed), ["A", "A#2", "unknown-3"])


if __name__ == "__main__":
    unittest.main()
