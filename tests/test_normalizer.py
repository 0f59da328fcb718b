"""Normalizer tests: PIES/ACES parsing rules and the merged-tree helpers."""

import unittest

from partsfeed.services.normalizer import (
    FeedParseError,
    node_get,
    node_text,
    one_or_many,
    parse_aces,
    parse_pies,
    parse_tree,
)
from partsfeed.services.types import CatalogItem, FitmentEntry
from tests.samples import (
    ACES_FEED,
    ACES_SINGLE_APP,
    PIES_FEED,
    PIES_SINGLE_ITEM,
    PIES_SINGLE_ITEM_AS_LIST,
)


def _pies_item(body: str) -> bytes:
    return f"<PIES><Items><Item>{body}</Item></Items></PIES>".encode("utf-8")


class TreeHelperTest(unittest.TestCase):
    def test_attributes_and_children_are_merged(self):
        tree = parse_tree(b'<ACES><App><Years from="2010"><to>2015</to></Years></App></ACES>', "ACES")
        self.assertEqual(node_text(node_get(tree, "App", "Years", "from")), "2010")
        self.assertEqual(node_text(node_get(tree, "App", "Years", "to")), "2015")

    def test_text_with_attributes_lives_under_underscore(self):
        tree = parse_tree(b'<PIES><Price UOM="PE"> 12.50 </Price></PIES>', "PIES")
        self.assertEqual(node_get(tree, "Price"), {"UOM": "PE", "_": "12.50"})
        self.assertEqual(node_text(node_get(tree, "Price")), "12.50")

    def test_repeated_children_collapse_into_list(self):
        tree = parse_tree(b"<PIES><A>1</A><A>2</A><B>3</B></PIES>", "PIES")
        self.assertEqual(node_get(tree, "A"), ["1", "2"])
        self.assertEqual(one_or_many(node_get(tree, "B")), ["3"])
        self.assertEqual(one_or_many(node_get(tree, "C")), [])

    def test_namespaces_are_stripped(self):
        tree = parse_tree(b'<PIES xmlns="urn:x"><Items><Item>a</Item></Items></PIES>', "PIES")
        self.assertEqual(node_get(tree, "Items", "Item"), "a")

    def test_node_get_takes_first_of_a_repeated_element_mid_path(self):
        tree = parse_tree(b"<PIES><P><W>1</W></P><P><W>2</W></P></PIES>", "PIES")
        self.assertEqual(node_get(tree, "P", "W"), "1")

    def test_text_is_trimmed_at_the_edges_only(self):
        items = parse_pies(_pies_item(
            "<PartNumber>  X-1 </PartNumber>"
            '<Descriptions><Description DescriptionCode="SHO">\n   Pad   set  \n</Description>'
            '<Description DescriptionCode="EXT">  line one\nline two  </Description></Descriptions>'
            "<Packages><Package><Weights><Weight> 3.2 </Weight></Weights></Package></Packages>"
        ))
        item = items[0]
        self.assertEqual(item.sku, "X-1")
        self.assertEqual(item.short_desc, "Pad   set")
        self.assertEqual(item.long_desc, "<p>line one\nline two</p>\n")
        self.assertEqual(item.weight, "3.2")

    def test_node_get_on_scalar_returns_none(self):
        self.assertIsNone(node_get("text", "Child"))
        self.assertEqual(node_text(None), "")


class ParsePiesTest(unittest.TestCase):
    def setUp(self):
        self.items = parse_pies(PIES_FEED)
        self.by_sku = {i.sku: i for i in self.items}

    def test_empty_item_nodes_are_skipped_but_skuless_items_kept(self):
        self.assertEqual(len(self.items), 3)
        self.assertEqual([i.sku for i in self.items], ["BP-100", "ROT-200", ""])
        self.assertTrue(all(isinstance(i, CatalogItem) for i in self.items))

    def test_full_item(self):
        item = self.by_sku["BP-100"]
        self.assertEqual(item.title, "Ceramic Brake Pad Set")
        self.assertEqual(item.vendor, "Acme Brakes")
        self.assertEqual(item.short_desc, "Brake Pad")
        self.assertEqual(item.long_desc, "<p>Low dust &amp; quiet</p>\n<p>Includes hardware</p>\n")
        self.assertEqual(item.attributes, {"Material": "Semi-Metallic", "Color": "Black"})
        self.assertEqual(item.pricing, {"MSRP": 59.99, "JBR": 41.5})
        self.assertEqual(item.qty_available, 4)
        self.assertEqual(item.dimensions, "8x5x2")
        self.assertEqual(item.weight, "3.2")
        self.assertEqual(item.category, "1684")
        self.assertEqual((item.pies_segment, item.pies_base, item.pies_sub), ("BR", "PAD", "CER"))
        self.assertEqual(
            item.images,
            ["https://cdn.example.com/img/bp100.jpg", "http://cdn.example.com/img/bp100-box.jpg"],
        )

    def test_sparse_item_gets_defaults(self):
        item = self.by_sku["ROT-200"]
        self.assertEqual(item.title, "Rotor")
        self.assertEqual(item.vendor, "Unknown Brand")
        self.assertEqual(item.category, "Disc Brake Rotor")
        self.assertEqual(item.qty_available, 1)
        self.assertEqual(item.dimensions, "12xx")
        self.assertEqual(item.weight, "")
        self.assertEqual(item.pricing, {})
        self.assertEqual(item.images, [])
        self.assertEqual(item.long_desc, "")

    def test_item_without_identity(self):
        item = self.by_sku[""]
        self.assertEqual(item.vendor, "No Part Co")
        self.assertEqual(item.category, "Uncategorized")
        self.assertEqual(item.dimensions, "xx")

    def test_title_priority(self):
        both = parse_pies(_pies_item(
            '<PartNumber>X1</PartNumber><Descriptions>'
            '<Description DescriptionCode="SHO">Short</Description>'
            '<Description DescriptionCode="TLE">Title</Description>'
            '</Descriptions>'
        ))[0]
        short_only = parse_pies(_pies_item(
            '<PartNumber>X1</PartNumber><Descriptions>'
            '<Description DescriptionCode="SHO">Brake Pad</Description>'
            '</Descriptions>'
        ))[0]
        neither = parse_pies(_pies_item(
            '<PartNumber>X1</PartNumber><Descriptions>'
            '<Description DescriptionCode="EXT">Long</Description>'
            '</Descriptions>'
        ))[0]
        self.assertEqual(both.title, "Title")
        self.assertEqual(short_only.title, "Brake Pad")
        self.assertEqual(neither.title, "Part X1")

    def test_blank_title_falls_through(self):
        item = parse_pies(_pies_item(
            '<PartNumber>X1</PartNumber><Descriptions>'
            '<Description DescriptionCode="TLE"></Description>'
            '<Description DescriptionCode="SHO">Short</Description>'
            '</Descriptions>'
        ))[0]
        self.assertEqual(item.title, "Short")

    def test_sku_falls_back_to_base_item_id(self):
        item = parse_pies(_pies_item("<BaseItemID>B-1</BaseItemID>"))[0]
        self.assertEqual(item.sku, "B-1")
        self.assertEqual(item.title, "Part B-1")

    def test_price_example(self):
        item = parse_pies(_pies_item(
            '<PartNumber>P</PartNumber><Prices>'
            '<Pricing PriceType="MSRP"><Price>59.99</Price></Pricing>'
            '<Pricing PriceType="MAP"><Price>bogus</Price></Pricing>'
            '<Pricing PriceType="RET"><Price></Price></Pricing>'
            '<Pricing PriceType="JBR"><Price>NaN</Price></Pricing>'
            '</Prices>'
        ))[0]
        self.assertEqual(item.pricing, {"MSRP": 59.99})

    def test_single_item_document_matches_list_document(self):
        self.assertEqual(parse_pies(PIES_SINGLE_ITEM), parse_pies(PIES_SINGLE_ITEM_AS_LIST))
        self.assertEqual(len(parse_pies(PIES_SINGLE_ITEM)), 1)

    def test_missing_items_container_yields_nothing(self):
        self.assertEqual(parse_pies(b"<PIES><Header/></PIES>"), [])
        self.assertEqual(parse_pies(b"<PIES/>"), [])

    def test_records_are_immutable_and_use_camel_case(self):
        item = self.by_sku["BP-100"]
        with self.assertRaises(Exception):
            item.sku = "other"
        record = item.to_record()
        self.assertIn("shortDesc", record)
        self.assertIn("qtyAvailable", record)
        self.assertIn("piesSegment", record)
        self.assertEqual(record["sku"], "BP-100")

    def test_malformed_buffer_is_a_single_terminal_error(self):
        for bad in (b"", b"not xml at all", b"<PIES><Items><Item></Items>"):
            with self.assertRaises(FeedParseError):
                parse_pies(bad)

    def test_wrong_root_is_rejected(self):
        with self.assertRaises(FeedParseError):
            parse_pies(ACES_FEED)


class ParseAcesTest(unittest.TestCase):
    def test_complete_applications_only(self):
        entries = parse_aces(ACES_FEED)
        self.assertEqual(len(entries), 2)
        self.assertTrue(all(isinstance(e, FitmentEntry) for e in entries))
        first, second = entries
        self.assertEqual(first.key, ("BP-100", "2010", "2015", "TOYOTA", "CAMRY"))
        self.assertEqual((first.part_type, first.position), ("1684", "22"))
        self.assertEqual(second.key, ("ROT-200", "2008", "2012", "HONDA", "ACCORD"))
        self.assertEqual((second.part_type, second.position), ("", ""))

    def test_example_and_missing_year_to(self):
        entries = parse_aces(ACES_SINGLE_APP)
        self.assertEqual(len(entries), 1)
        self.assertEqual(
            entries[0].to_record(),
            {
                "partNumber": "BP-100",
                "make": "TOYOTA",
                "model": "CAMRY",
                "yearFrom": "2010",
                "yearTo": "2015",
                "partType": "",
                "position": "",
            },
        )
        missing_to = ACES_SINGLE_APP.replace(b' to="2015"', b"")
        self.assertEqual(parse_aces(missing_to), [])

    def test_each_required_field_is_enforced(self):
        base = (
            '<App><Make id="M"/><Model id="N"/><Years from="2001" to="2002"/><Part>P</Part></App>'
        )
        removals = ['<Make id="M"/>', '<Model id="N"/>', ' from="2001"', ' to="2002"', "<Part>P</Part>"]
        self.assertEqual(len(parse_aces(f"<ACES>{base}</ACES>".encode())), 1)
        for piece in removals:
            doc = f"<ACES>{base.replace(piece, '')}</ACES>".encode()
            self.assertEqual(parse_aces(doc), [], piece)

    def test_single_app_matches_list(self):
        as_list = ACES_SINGLE_APP.replace(b"</ACES>", b"<App/></ACES>")
        self.assertEqual(parse_aces(ACES_SINGLE_APP), parse_aces(as_list))

    def test_malformed_and_wrong_root(self):
        with self.assertRaises(FeedParseError):
            parse_aces(b"<ACES><App></ACES>")
        with self.assertRaises(FeedParseError):
            parse_aces(PIES_SINGLE_ITEM)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
