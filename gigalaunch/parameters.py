"""Launch parameters, used to replace `${name}` placeholders found in arguments.
"""

import re

from typing import Dict, Iterable, List


__all__ = ["LAUNCH_PARAMETERS", "LaunchParameters", "replace"]


# Names of all recognized parameters, any other placeholder is left untouched.
LAUNCH_PARAMETERS = (
    # Game
    "auth_player_name",
    "version_name",
    "game_directory",
    "assets_root",
    "assets_index_name",
    "auth_uuid",
    "auth_access_token",
    "clientid",
    "auth_xuid",
    "user_type",
    "version_type",
    "resolution_width",
    "resolution_height",
    # JVM
    "classpath",
    "classpath_separator",
    "library_directory",
    "natives_directory",
    "launcher_name",
    "launcher_version",
)

# Value of parameters that have not been assigned.
DEFAULT_VALUE = "null"

_placeholder_re = re.compile(r"\$\{([^${}]*)\}")


class LaunchParameters:
    """Fixed set of named string parameters, each one defaults to "null" until it's
    assigned. Setting an attribute that is not a known parameter raises an
    AttributeError.
    """

    __slots__ = LAUNCH_PARAMETERS

    def __init__(self, **kwargs: str) -> None:
        for name in LAUNCH_PARAMETERS:
            setattr(self, name, DEFAULT_VALUE)
        for name, value in kwargs.items():
            if name not in LAUNCH_PARAMETERS:
                raise TypeError(f"unknown launch parameter: {name}")
            setattr(self, name, value)

    def to_dict(self) -> Dict[str, str]:
        return {name: getattr(self, name) for name in LAUNCH_PARAMETERS}

    def replace(self, text: str) -> str:
        """Replace all recognized placeholders in the given text. The text is scanned
        once, so placeholders coming from substituted values are kept as-is.
        """

        def replacement(match: "re.Match") -> str:
            name = match.group(1)
            if name in LAUNCH_PARAMETERS:
                return str(getattr(self, name))
            return match.group(0)

        return _placeholder_re.sub(replacement, text)

    def replace_list(self, texts: Iterable[str]) -> List[str]:
        """Call `replace` on every text of the given list.
        """
        return [self.replace(text) for text in texts]

    def __repr__(self) -> str:
        return f"<LaunchParameters {self.to_dict()}>"


def replace(params: LaunchParameters, text: str) -> str:
    """Shortcut for `params.replace(text)`.
    """
    return params.replace(text)
