"""Config commands -- profiles and global settings.

Provides the ``stitchkit config`` sub-command group. A profile names the
application to talk to; the global config holds defaults such as the output
format and the default profile.

Typical workflow::

    stitchkit config init --name dev --app-id myapp-abcde
    stitchkit config profiles
    stitchkit config set output.format json
"""

from __future__ import annotations

from typing import Optional

import typer

from stitchkit.output import error, format_response, get_output, info, success, suggest


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("init")
def config_init(
    name: str = typer.Option(..., "--name", "-n", help="Profile name."),
    app_id: str = typer.Option(..., "--app-id", "-a", help="Application id."),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Override the platform base URL."
    ),
    app_version: Optional[str] = typer.Option(
        None, "--app-version", help="Version reported in device info."
    ),
    storage: str = typer.Option(
        "file", "--storage", help="Session storage: file or memory."
    ),
    make_default: bool = typer.Option(
        False, "--default", help="Make this the default profile."
    ),
) -> None:
    """Create or overwrite a profile.

    The first profile created also becomes the default profile.

    Raises:
        typer.Exit: With code 2 for an unknown storage backend.

    Example::

        stitchkit config init --name dev --app-id myapp-abcde
        stitchkit config init --name local --app-id myapp --base-url http://localhost:9090
    """
    from stitchkit.config import load_global_config, profile_exists, save_global_config, save_profile
    from stitchkit.models import Profile

    if storage not in ("file", "memory"):
        error(f"Unknown storage '{storage}'. Use 'file' or 'memory'.")
        raise typer.Exit(code=2)

    if profile_exists(name):
        info(f'Overwriting profile "{name}".')

    profile = Profile(
        name=name,
        app_id=app_id,
        base_url=base_url,
        app_version=app_version,
        storage=storage,
    )
    save_profile(profile)

    config = load_global_config()
    if make_default or config.default_profile is None:
        config.default_profile = name
        save_global_config(config)
        info(f'Default profile set to "{name}".')

    success(f'Profile "{name}" saved for app {app_id}.')
    suggest("Log in: stitchkit auth login")


@config_app.command("show")
def config_show() -> None:
    """Show the global configuration.

    Example::

        stitchkit config show --json
    """
    from stitchkit.config import get_config_dir, load_global_config

    config = load_global_config()
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("profiles")
def config_profiles() -> None:
    """List configured profiles.

    Example::

        stitchkit config profiles
    """
    from stitchkit.config import list_profiles, load_global_config, load_profile
    from stitchkit.exceptions import ConfigError

    names = list_profiles()
    if not names:
        info("No profiles configured.")
        suggest("Create one: stitchkit config init --name <name> --app-id <app>")
        return

    default = load_global_config().default_profile
    rows: list[list[str]] = []
    for name in names:
        marker = "*" if name == default else ""
        try:
            profile = load_profile(name)
        except ConfigError:
            rows.append([name, "error", "-", marker])
            continue
        rows.append([name, profile.app_id, profile.base_url or "-", marker])

    get_output().print_table(
        ["Profile", "App ID", "Base URL", "Default"], rows, title="Profiles"
    )


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'output.format')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a global configuration value.

    Nested keys use dot notation. The value is coerced to the type of the
    current value before the config is validated and saved.

    Raises:
        typer.Exit: With code 2 for an unknown key or an invalid value.

    Example::

        stitchkit config set default_profile dev
        stitchkit config set output.format json
        stitchkit config set auto_select_single_profile false
    """
    from pydantic import ValidationError

    from stitchkit.config import load_global_config, save_global_config
    from stitchkit.models import GlobalConfig

    data = load_global_config().model_dump(mode="json")

    *parents, final_key = key.split(".")
    target = data
    for part in parents:
        if not isinstance(target.get(part), dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[part]

    if final_key not in target:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    current = target[final_key]
    if isinstance(current, bool):
        coerced: object = value.lower() in ("true", "1", "yes")
    else:
        coerced = value
    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")
