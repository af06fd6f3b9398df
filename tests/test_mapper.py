import unittest
from datetime import date

from geocell_analyst import mapper
from geocell_analyst.mapper import DataIntegrityError


def cell_row(**overrides):
    row = {
        "cell_id": 7,
        "lac_tac": "8840",
        "technology": 4,
        "direction": 120,
        "created": date(2024, 1, 1),
        "modified": date(2024, 2, 1),
        "cgi": "268-06-8840-8453",
        "paragon_cgi": None,
        "ci": None,
        "eci_nci": "2264413",
        "cell_name": "LISBOA_A",
        "enb_gnb_id": None,
        "enb_gnb": None,
        "location_id": None,
        "location_wkt": None,
        "county_id": None,
        "district_id": None,
        "country_name": None,
        "mccmnc_id": None,
        "band_id": None,
    }
    row.update(overrides)
    return row


class RowToCellTests(unittest.TestCase):
    def test_missing_required_field_is_a_data_integrity_error(self):
        with self.assertRaises(DataIntegrityError) as ctx:
            mapper.row_to_cell(cell_row(technology=None))
        self.assertIn("technology", str(ctx.exception))

    def test_unmatched_left_joins_yield_no_sub_entities(self):
        cell = mapper.row_to_cell(cell_row())
        self.assertEqual(cell.id, 7)
        self.assertEqual(cell.name, "LISBOA_A")
        self.assertEqual(cell.paragon_cgi, "")
        self.assertIsNone(cell.location)
        self.assertIsNone(cell.band)
        self.assertIsNone(cell.mcc_mnc)
        self.assertIsNone(cell.coordinates)

    def test_full_join_builds_nested_entities(self):
        cell = mapper.row_to_cell(
            cell_row(
                location_id=3,
                location_wkt="POINT(-9.1 38.7)",
                address="Rua A",
                zip3=100,
                zip4=1000,
                county_id=11,
                county_code="1106",
                county_name="Lisboa",
                district_id="11",
                district_name="Lisboa",
                country_name="Portugal",
                country_code="PT",
                mccmnc_id=2,
                mcc=268,
                mnc=6,
                operator="MEO - Servicos",
                brand="MEO",
                band_id=4,
                band="B3",
                bandwidth=20,
                earfcn=1300,
                enb_gnb_id=9,
                enb_gnb=88404,
            )
        )
        self.assertAlmostEqual(cell.coordinates.x, -9.1)
        self.assertAlmostEqual(cell.coordinates.y, 38.7)
        self.assertEqual(cell.location.address, "Rua A")
        self.assertEqual(cell.location.address1, "")
        self.assertEqual(cell.location.county.name, "Lisboa")
        self.assertEqual(cell.location.county.district.country.code, "PT")
        self.assertEqual(cell.mcc_mnc.brand, "MEO")
        self.assertEqual(cell.band.band, "B3")
        self.assertEqual(cell.band.bandwidth, 20.0)
        self.assertIsNone(cell.band.uplink_freq)
        self.assertEqual(cell.enb_gnb, 88404)

    def test_location_without_coordinates(self):
        cell = mapper.row_to_cell(cell_row(location_id=3, location_wkt=None))
        self.assertIsNotNone(cell.location)
        self.assertIsNone(cell.coordinates)


class WktTests(unittest.TestCase):
    def test_malformed_wkt_is_a_data_integrity_error(self):
        with self.assertRaises(DataIntegrityError):
            mapper.parse_point("POINT(")

    def test_wrong_geometry_type_is_rejected(self):
        with self.assertRaises(DataIntegrityError):
            mapper.parse_point("POLYGON((0 0, 1 0, 1 1, 0 0))")
        with self.assertRaises(DataIntegrityError):
            mapper.parse_polygon("POINT(1 2)")

    def test_polygon_row(self):
        polygon = mapper.row_to_cell_polygon(
            {
                "id": 1,
                "cell_id": 7,
                "polygon_wkt": "POLYGON((-9.1 38.7, -9.09 38.7, -9.09 38.71, -9.1 38.7))",
                "polygon_short_wkt": None,
            }
        )
        self.assertEqual(polygon.cell_id, 7)
        self.assertEqual(len(polygon.polygon.exterior.coords), 4)
        self.assertIsNone(polygon.polygon_short)

    def test_polygon_row_without_ids(self):
        with self.assertRaises(DataIntegrityError):
            mapper.row_to_cell_polygon({"id": None, "cell_id": 7})


if __name__ == "__main__":
    unittest.main()
