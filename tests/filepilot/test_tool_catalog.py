import unittest

from filepilot.bootstrap_tools import build_tool_catalog
from filepilot.registry.tool_registry import ParamType, ToolCatalog, ToolDefinition, ToolParameter, args_schema


class TestToolCatalog(unittest.TestCase):
    def test_builtin_tools_registered_in_order(self) -> None:
        cat = build_tool_catalog()
        names = [t.name for t in cat.list_tools()]
        self.assertEqual(names[:4], ["file_list", "file_move", "file_copy", "file_delete"])
        self.assertIn("batch_move", names)
        self.assertIn("find_duplicates", names)
        self.assertNotIn("semantic_search", names)
        self.assertNotIn("image_generate", names)

    def test_gated_tools_only_when_enabled(self) -> None:
        cat = build_tool_catalog(semantic_search=True, visual_search=True, image_generate=True)
        for name in ("semantic_search", "visual_search", "similar_images", "image_generate"):
            self.assertIsNotNone(cat.find(name), name)

    def test_find_unknown_returns_none(self) -> None:
        self.assertIsNone(build_tool_catalog().find("rm_rf"))

    def test_first_registration_wins(self) -> None:
        cat = ToolCatalog()
        cat.register(ToolDefinition(name="t", description="first"))
        cat.register(ToolDefinition(name="t", description="second"))
        self.assertEqual(cat.find("t").description, "first")
        self.assertEqual(len(cat), 2)

    def test_requires_confirmation_flag(self) -> None:
        cat = build_tool_catalog()
        self.assertTrue(ToolCatalog.requires_confirmation(cat.find("file_delete")))
        self.assertFalse(ToolCatalog.requires_confirmation(cat.find("file_list")))
        self.assertFalse(ToolCatalog.requires_confirmation(None))

    def test_export_schema_shape(self) -> None:
        schema = build_tool_catalog().export_schema()
        by_name = {t["name"]: t for t in schema}

        move = by_name["file_move"]
        self.assertEqual(move["input_schema"]["type"], "object")
        self.assertEqual(move["input_schema"]["required"], ["source", "destination"])
        self.assertEqual(move["input_schema"]["properties"]["destination"]["type"], "string")

        delete = by_name["file_delete"]
        paths = delete["input_schema"]["properties"]["paths"]
        self.assertEqual(paths["type"], "array")
        self.assertEqual(paths["items"], {"type": "string"})

        listing = by_name["file_list"]
        self.assertEqual(listing["input_schema"]["required"], ["path"])
        self.assertEqual(listing["input_schema"]["properties"]["show_hidden"]["type"], "boolean")

    def test_args_schema_accepts_string_for_list_params(self) -> None:
        d = ToolDefinition(
            name="x",
            description="",
            parameters=(
                ToolParameter(name="paths", description="", type=ParamType.ARRAY, required=True),
                ToolParameter(name="dest", description="", type=ParamType.STRING, required=True),
            ),
        )
        s = args_schema(d)
        self.assertEqual(s["required"], ["paths", "dest"])
        self.assertEqual(len(s["properties"]["paths"]["anyOf"]), 2)
        self.assertEqual(s["properties"]["dest"]["minLength"], 1)


if __name__ == "__main__":
    unittest.main()
