from __future__ import annotations

from filepilot.registry.tool_registry import ParamType, ToolCatalog, ToolDefinition, ToolParameter


def _p(name: str, description: str, type_: ParamType, required: bool = False, *, accepts_list: bool = False) -> ToolParameter:
    return ToolParameter(name=name, description=description, type=type_, required=required, accepts_list=accepts_list)


STR = ParamType.STRING
INT = ParamType.INTEGER
BOOL = ParamType.BOOLEAN
ARR = ParamType.ARRAY


def build_tool_catalog(
    *,
    semantic_search: bool = False,
    visual_search: bool = False,
    image_generate: bool = False,
) -> ToolCatalog:
    """
    Register the built-in file tools.

    Search and generation tools backed by external engines are only
    registered when the caller has such an engine to offer.
    """
    cat = ToolCatalog()

    def reg(name: str, description: str, requires_confirmation: bool, *params: ToolParameter) -> None:
        cat.register(
            ToolDefinition(
                name=name,
                description=description,
                parameters=tuple(params),
                requires_confirmation=requires_confirmation,
            )
        )

    reg(
        "file_list",
        "List files and directories in a path. Returns names, sizes, types, and modification dates.",
        False,
        _p("path", "Directory path to list", STR, True),
        _p("show_hidden", "Include hidden files (default: false)", BOOL),
        _p("recursive", "List subdirectories recursively", BOOL),
    )
    reg(
        "file_move",
        "Move files or directories to a new location",
        True,
        _p("source", "Source path or array of paths to move", STR, True, accepts_list=True),
        _p("destination", "Destination directory path", STR, True),
    )
    reg(
        "file_copy",
        "Copy files or directories to a new location",
        True,
        _p("source", "Source path or array of paths to copy", STR, True, accepts_list=True),
        _p("destination", "Destination directory path", STR, True),
    )
    reg(
        "file_delete",
        "Move files or directories to Trash",
        True,
        _p("paths", "Path or array of paths to delete", ARR, True),
    )
    reg(
        "file_create",
        "Create a new file or directory",
        False,
        _p("path", "Path for the new file or directory", STR, True),
        _p("is_directory", "Create a directory instead of file", BOOL),
        _p("content", "Initial content for files", STR),
    )
    reg(
        "file_rename",
        "Rename a file or directory",
        True,
        _p("path", "Path of file to rename", STR, True),
        _p("new_name", "New name for the file", STR, True),
    )
    reg(
        "file_search",
        "Search for files by name pattern or content",
        False,
        _p("path", "Directory to search in", STR, True),
        _p("pattern", "Filename pattern (supports wildcards)", STR, True),
        _p("recursive", "Search subdirectories", BOOL),
    )
    reg(
        "file_metadata",
        "Get detailed metadata about a file or directory",
        False,
        _p("path", "Path of file to inspect", STR, True),
    )
    reg(
        "batch_rename",
        "Rename multiple files using a pattern",
        True,
        _p("paths", "Array of file paths to rename", ARR, True),
        _p("pattern", "Renaming pattern with placeholders {name}, {ext}, {n}, {date}", STR),
        _p("find", "Text to find in filenames", STR),
        _p("replace", "Text to replace found text with", STR),
    )
    reg(
        "batch_move",
        "Move multiple files to destination, optionally organizing by type or date",
        True,
        _p("paths", "Array of file paths to move", ARR, True),
        _p("destination", "Destination directory", STR, True),
        _p("organize_by", "How to organize: 'type', 'date', or 'none'", STR),
    )
    reg(
        "organize",
        "Sort the files of a directory into subfolders by type or date",
        True,
        _p("path", "Directory to organize", STR, True),
        _p("organize_by", "How to organize: 'type' (default) or 'date'", STR),
    )
    reg(
        "find_duplicates",
        "Find files with identical content in a directory",
        False,
        _p("path", "Directory to scan", STR, True),
        _p("recursive", "Scan subdirectories (default: true)", BOOL),
    )

    if semantic_search:
        reg(
            "semantic_search",
            "Search for files by their content meaning using AI embeddings. Find files based on description rather than exact text.",
            False,
            _p("query", "Natural language description of what to find", STR, True),
            _p("directory", "Directory to search in (default: current directory)", STR),
            _p("max_results", "Maximum number of results to return (default: 20)", INT),
            _p("file_type", "Filter by file type: 'text', 'code', 'document', 'image'", STR),
        )
    if visual_search:
        reg(
            "visual_search",
            "Search for images by natural language description. Find photos matching descriptions like 'sunset at beach'.",
            False,
            _p("query", "Natural language description of images to find", STR, True),
            _p("directory", "Directory to search in (default: current directory)", STR),
            _p("max_results", "Maximum number of results to return (default: 20)", INT),
        )
        reg(
            "similar_images",
            "Find images visually similar to a given image file using image embeddings.",
            False,
            _p("image_path", "Path to the reference image", STR, True),
            _p("directory", "Directory to search in (default: current directory)", STR),
            _p("max_results", "Maximum number of similar images to return (default: 20)", INT),
        )
    if image_generate:
        reg(
            "image_generate",
            "Generate an image from a text description. The image will be saved to the current directory.",
            False,
            _p("prompt", "Text description of the image to generate", STR, True),
            _p("filename", "Name for the output file without extension (default: generated_image)", STR),
            _p("model", "Model to use: 'fast' or 'quality' (default: fast)", STR),
        )

    return cat
