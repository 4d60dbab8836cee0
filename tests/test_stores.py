import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from app.stores import MemoryInstanceStore, MemoryTemplateStore, MemoryTypeStore
from fieldengine.definitions import FieldDefinitionRegistry
from fieldengine.session import InstanceFormSession
from fieldengine.templates import Template


class TestTypeStore(unittest.TestCase):
    def setUp(self) -> None:
        self.store = MemoryTypeStore()
        registry = FieldDefinitionRegistry()
        registry.append(name="RAM", field_type="Number", is_required=True)
        registry.append(name="OS", field_type="SingleSelect", options="Linux,macOS")
        registry.append(name="Tags", field_type="MultiSelect", options='["a","b"]')
        created = self.store.create_type("Asset", "Laptop", registry.to_request(), default_depreciation_months=36)
        self.assertTrue(created["ok"])
        self.type = created["type"]

    def test_create_assigns_ids_in_order(self) -> None:
        fields = self.store.list_definitions(self.type["id"])
        self.assertEqual([f["name"] for f in fields], ["RAM", "OS", "Tags"])
        self.assertEqual([f["sortOrder"] for f in fields], [0, 1, 2])
        self.assertTrue(all(f["id"] for f in fields))
        self.assertEqual(self.type["customFields"], fields)

    def test_full_replacement_save(self) -> None:
        registry = FieldDefinitionRegistry.from_type(self.store.list_definitions(self.type["id"]))
        removed = registry.remove(0)
        registry.move_up(1)
        registry.update(0, name="Labels")
        registry.append(name="Warranty URL", field_type="Url")
        result = self.store.update_type(self.type["id"], "Laptop", registry.to_request(), default_depreciation_months=36)
        self.assertTrue(result["ok"])
        fields = self.store.list_definitions(self.type["id"])
        self.assertEqual([f["name"] for f in fields], ["Labels", "OS", "Warranty URL"])
        self.assertEqual([f["sortOrder"] for f in fields], [0, 1, 2])
        self.assertNotIn(removed.id, {f["id"] for f in fields})
        self.assertTrue(self.store.get_definition(removed.id)["isArchived"])

    def test_stored_order_follows_list_position(self) -> None:
        payload = [
            {"name": "A", "fieldType": "Text", "isRequired": False, "sortOrder": 5},
            {"name": "B", "fieldType": "Text", "isRequired": False, "sortOrder": 5},
        ]
        created = self.store.create_type("Asset", "Phone", payload)
        fields = self.store.list_definitions(created["type"]["id"])
        self.assertEqual([(f["name"], f["sortOrder"]) for f in fields], [("A", 0), ("B", 1)])

    def test_non_numeric_sort_order_does_not_raise(self) -> None:
        payload = [{"name": "A", "fieldType": "Text", "isRequired": False, "sortOrder": "x"}]
        result = self.store.update_type(self.type["id"], "Laptop", payload)
        self.assertTrue(result["ok"])
        self.assertEqual([f["sortOrder"] for f in result["type"]["customFields"]], [0])

    def test_required_flag_text(self) -> None:
        payload = [
            {"name": "A", "fieldType": "Text", "isRequired": "false"},
            {"name": "B", "fieldType": "Text", "isRequired": "true"},
        ]
        created = self.store.create_type("Asset", "Tablet", payload)
        fields = self.store.list_definitions(created["type"]["id"])
        self.assertEqual([f["isRequired"] for f in fields], [False, True])

    def test_invalid_field_type_rejects_whole_save(self) -> None:
        before = self.store.list_definitions(self.type["id"])
        payload = [{"name": "Ok", "fieldType": "Text", "isRequired": False, "sortOrder": 0}, {"name": "Bad", "fieldType": "Colour", "isRequired": False, "sortOrder": 1}]
        result = self.store.update_type(self.type["id"], "Renamed", payload)
        self.assertFalse(result["ok"])
        self.assertEqual(result["errors"][0]["code"], "INVALID_FIELD_TYPE")
        self.assertEqual(result["errors"][0]["path"], "customFields[1].fieldType")
        self.assertEqual(self.store.list_definitions(self.type["id"]), before)
        self.assertEqual(self.store.get_type(self.type["id"])["name"], "Laptop")

    def test_update_without_custom_fields_keeps_definitions(self) -> None:
        before = self.store.list_definitions(self.type["id"])
        result = self.store.update_type(self.type["id"], "Notebook", None)
        self.assertTrue(result["ok"])
        self.assertEqual(self.store.list_definitions(self.type["id"]), before)

    def test_unknown_id_is_warned(self) -> None:
        payload = [{"id": "nope", "name": "Ghost", "fieldType": "Text", "isRequired": False, "sortOrder": 0}]
        result = self.store.update_type(self.type["id"], "Laptop", payload)
        self.assertTrue(result["ok"])
        self.assertEqual(result["warnings"][0]["code"], "CUSTOM_FIELD_UNKNOWN")
        self.assertEqual(self.store.list_definitions(self.type["id"]), [])

    def test_list_types_by_entity(self) -> None:
        self.store.create_type("Certificate", "TLS")
        self.assertEqual([t["name"] for t in self.store.list_types("Asset")], ["Laptop"])
        self.assertTrue(self.store.archive_type(self.type["id"]))
        self.assertEqual(self.store.list_types("Asset"), [])

    def test_create_rejects_bad_entity_type(self) -> None:
        result = self.store.create_type("Vehicle", "Van")
        self.assertFalse(result["ok"])
        self.assertEqual(result["errors"][0]["code"], "INVALID_ENTITY_TYPE")


class TestTemplateAndInstanceStores(unittest.TestCase):
    def setUp(self) -> None:
        self.types = MemoryTypeStore()
        created = self.types.create_type(
            "Asset",
            "Laptop",
            [
                {"name": "RAM", "fieldType": "Number", "isRequired": True, "sortOrder": 0},
                {"name": "OS", "fieldType": "SingleSelect", "options": "Linux,macOS", "isRequired": False, "sortOrder": 1},
            ],
            default_depreciation_months=36,
        )
        self.type = created["type"]
        self.ram_id, self.os_id = [f["id"] for f in self.type["customFields"]]
        self.templates = MemoryTemplateStore(self.types)
        self.instances = MemoryInstanceStore(self.types)

    def test_template_round_trip_into_session(self) -> None:
        draft = Template(
            owner_type_id=self.type["id"],
            name="Dev laptop",
            scalar_defaults={"locationId": "hq", "purchaseCost": "1500"},
        )
        draft.field_values.set(self.ram_id, "32")
        draft.field_values.set("stale", "x")
        created = self.templates.create_template(draft.to_request())
        self.assertTrue(created["ok"])
        self.assertEqual(created["warnings"][0]["code"], "CUSTOM_FIELD_SKIPPED")
        dto = created["template"]
        self.assertEqual(dto["assetTypeName"], "Laptop")
        self.assertEqual(dto["customFieldValues"], [{"fieldDefinitionId": self.ram_id, "fieldName": "RAM", "fieldType": "Number", "value": "32"}])

        definitions = FieldDefinitionRegistry.from_type(self.types.list_definitions(self.type["id"])).definitions
        session = InstanceFormSession()
        session.select_type(self.type["id"], definitions, self.type["defaultDepreciationMonths"])
        session.select_template(Template.from_dict(self.templates.get_template(dto["id"])))
        self.assertEqual(session.scalars, {"depreciationMonths": "36", "locationId": "hq", "purchaseCost": "1500"})
        self.assertEqual(session.validate(), [])

        result = self.instances.create("Asset", self.type["id"], {"name": "LT-1", **session.submission()})
        self.assertTrue(result["ok"])
        self.assertEqual(result["instance"]["customFieldValues"][0]["value"], "32")

    def test_template_list_and_archive(self) -> None:
        created = self.templates.create_template({"assetTypeId": self.type["id"], "name": "B"})
        self.templates.create_template({"assetTypeId": self.type["id"], "name": "a"})
        self.assertEqual([t["name"] for t in self.templates.list_templates(self.type["id"])], ["a", "B"])
        self.assertTrue(self.templates.archive_template(created["template"]["id"]))
        self.assertFalse(self.templates.archive_template(created["template"]["id"]))
        self.assertEqual([t["name"] for t in self.templates.list_templates()], ["a"])

    def test_template_requires_known_type(self) -> None:
        result = self.templates.create_template({"assetTypeId": "missing", "name": "X"})
        self.assertFalse(result["ok"])
        self.assertEqual(result["errors"][0]["code"], "TYPE_NOT_FOUND")

    def test_template_update_upserts_values(self) -> None:
        created = self.templates.create_template(
            {"assetTypeId": self.type["id"], "name": "T", "customFieldValues": [{"fieldDefinitionId": self.ram_id, "value": "8"}]}
        )
        template_id = created["template"]["id"]
        updated = self.templates.update_template(
            template_id, {"name": "T", "notes": "n", "customFieldValues": [{"fieldDefinitionId": self.os_id, "value": "Linux"}]}
        )
        values = {v["fieldDefinitionId"]: v["value"] for v in updated["template"]["customFieldValues"]}
        self.assertEqual(values, {self.ram_id: "8", self.os_id: "Linux"})
        self.assertEqual(updated["template"]["notes"], "n")

    def test_instance_create_rejects_unknown_definition(self) -> None:
        result = self.instances.create("Asset", self.type["id"], {"customFieldValues": [{"fieldDefinitionId": "ghost", "value": "x"}]})
        self.assertFalse(result["ok"])
        self.assertEqual(result["errors"][0]["code"], "CUSTOM_FIELD_UNKNOWN")

    def test_instance_create_rejects_other_entity_type(self) -> None:
        result = self.instances.create("Certificate", self.type["id"], {})
        self.assertFalse(result["ok"])

    def test_instance_update_reports_changes_and_hides_archived(self) -> None:
        created = self.instances.create(
            "Asset", self.type["id"], {"customFieldValues": [{"fieldDefinitionId": self.ram_id, "value": "8"}]}
        )
        instance_id = created["instance"]["id"]
        result = self.instances.update(
            instance_id,
            {
                "customFieldValues": [
                    {"fieldDefinitionId": self.ram_id, "value": "16"},
                    {"fieldDefinitionId": self.os_id, "value": "macOS"},
                    {"fieldDefinitionId": "ghost", "value": "x"},
                ]
            },
        )
        self.assertTrue(result["ok"])
        self.assertEqual(
            result["changes"],
            [{"field": "Custom: RAM", "old": "8", "new": "16"}, {"field": "Custom: OS", "old": None, "new": "macOS"}],
        )

        fields = [f for f in self.types.list_definitions(self.type["id"]) if f["id"] != self.os_id]
        self.types.update_type(self.type["id"], "Laptop", fields)
        values = self.instances.get(instance_id)["customFieldValues"]
        self.assertEqual([v["fieldDefinitionId"] for v in values], [self.ram_id])

    def test_instance_update_missing(self) -> None:
        result = self.instances.update("missing", {})
        self.assertFalse(result["ok"])
        self.assertEqual(result["errors"][0]["code"], "INSTANCE_NOT_FOUND")


if __name__ == "__main__":
    unittest.main()
