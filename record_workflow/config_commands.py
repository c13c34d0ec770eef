"""`rw config` commands: read and write the YAML settings that pick the store and the signed-in user."""

from cyclopts import App

from record_workflow.config import get_config

config_app = App(name="config", help="Manage store, database and user settings")

# Printed masked by every config command
SECRET_KEYS = {"notion.token"}


def _display(key: str, value: object) -> str:
    if key in SECRET_KEYS and value:
        return "********"
    return str(value)


def _scope(global_: bool) -> str:
    return "global" if global_ else "local"


@config_app.command
def set(key: str, value: str, global_: bool = False) -> None:
    """Store a setting.

    Args:
        key: Dotted key such as ``store``, ``user.role`` or ``notion.database.leads``
        value: Value to store
        global_: Write to ~/.record-workflow instead of the project directory
    """
    get_config(use_global=global_).set(key, value)
    print(f"Set {key} = {_display(key, value)} ({_scope(global_)})")


@config_app.command
def unset(key: str, global_: bool = False) -> None:
    """Remove a setting; removing an absent key is not an error.

    Args:
        key: Dotted key to remove
        global_: Remove from ~/.record-workflow instead of the project directory
    """
    get_config(use_global=global_).unset(key)
    print(f"Unset {key} ({_scope(global_)})")


@config_app.command
def get(key: str, global_: bool = False) -> None:
    """Print one setting, as the workflow commands would resolve it."""
    value = get_config(use_global=global_).get(key)
    print(f"{key} is not set" if value is None else f"{key} = {_display(key, value)}")


@config_app.command(name="list")
def list_config(global_: bool = False) -> None:
    """Print every setting in effect, secrets masked."""
    settings = get_config(use_global=global_).list()
    if not settings:
        print(f"No {_scope(global_)} settings")
        return

    for key in sorted(settings):
        print(f"{key} = {_display(key, settings[key])}")
