from .batch_move import run as batch_move_run
from .batch_rename import run as batch_rename_run
from .copy import run as copy_run
from .create import run as create_run
from .delete import run as delete_run
from .find_duplicates import run as find_duplicates_run
from .list import run as list_run
from .metadata import run as metadata_run
from .move import run as move_run
from .organize import run as organize_run
from .relocate import run as relocate_run
from .rename import run as rename_run
from .rmdir import run as rmdir_run
from .search import run as search_run

__all__ = [
    "batch_move_run",
    "batch_rename_run",
    "copy_run",
    "create_run",
    "delete_run",
    "find_duplicates_run",
    "list_run",
    "metadata_run",
    "move_run",
    "organize_run",
    "relocate_run",
    "rename_run",
    "rmdir_run",
    "search_run",
]
