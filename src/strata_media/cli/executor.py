"""Script execution sandbox for scene definitions.

Scene scripts run with restricted imports in a fresh namespace and must
define a ``scene`` variable holding a :class:`~strata_media.geometry.Scene`.
"""

import sys
from pathlib import Path
from typing import Any

ALLOWED_MODULES = frozenset({"strata_media", "numpy", "np", "scipy", "math", "pathlib"})


class RestrictedImportError(ImportError):
    """Raised when a disallowed module import is attempted."""

    pass


def execute_scene_script(
    script_path: Path, script_content: str, verbose: bool = False
) -> dict[str, Any]:
    """Execute a scene script in a controlled namespace.

    Only strata_media and a few scientific computing modules may be
    imported.

    Args:
        script_path: Path to the script file (for __file__ and relative imports)
        script_content: Content of the script to execute
        verbose: If True, print debug information

    Returns:
        Namespace dict containing all variables defined by the script

    Raises:
        RestrictedImportError: If script attempts to import disallowed module
        SyntaxError: If script has syntax errors
        Exception: Any exception raised by the script during execution
    """
    if isinstance(__builtins__, dict):
        builtins = dict(__builtins__)
    else:
        builtins = dict(vars(__builtins__))
    original_import = builtins["__import__"]

    def restricted_import(name, globals=None, locals=None, fromlist=(), level=0):
        """Restricted import that only allows specific modules."""
        top_level = name.split(".")[0]
        # Relative imports inside allowed packages resolve against their parent
        if level == 0 and top_level not in ALLOWED_MODULES:
            raise RestrictedImportError(
                f"Import of '{name}' is not allowed in scene scripts. "
                f"Allowed modules: {', '.join(sorted(ALLOWED_MODULES))}"
            )
        return original_import(name, globals, locals, fromlist, level)

    builtins["__import__"] = restricted_import
    namespace = {
        "__name__": "__main__",
        "__file__": str(script_path),
        "__builtins__": builtins,
    }

    script_dir = str(script_path.parent)
    sys.path.insert(0, script_dir)
    try:
        if verbose:
            print(f"Executing script: {script_path}")
            print(f"Script directory added to path: {script_dir}")

        exec(compile(script_content, str(script_path), "exec"), namespace)

        if verbose:
            defined_vars = [k for k in namespace.keys() if not k.startswith("__")]
            print(f"Script defined variables: {', '.join(defined_vars)}")
    finally:
        if script_dir in sys.path:
            sys.path.remove(script_dir)

    return namespace


def validate_scene_object(namespace: dict[str, Any]) -> Any:
    """Validate that namespace contains a scene.

    Args:
        namespace: Namespace dict from script execution

    Returns:
        The scene object

    Raises:
        ValueError: If no scene is found or it is not a Scene
    """
    from strata_media.geometry.scene import Scene

    scene = namespace.get("scene")

    if scene is None:
        raise ValueError(
            "Script must define a 'scene' variable. "
            "Example: scene = Scene(objects=[...], cell_size=(4.0, 4.0, 0.0))"
        )

    if not isinstance(scene, Scene):
        raise ValueError(
            f"'scene' must be a strata_media Scene instance, got {type(scene).__name__}"
        )

    return scene
