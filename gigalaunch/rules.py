"""Rules interpretation, used to decide if a library or an argument should be part of
the game's launch, depending on the platform and on the enabled features.

Rules are found in version's metadata as lists of objects like the following, where
both `os` and `features` (and their inner keys) are optional:

    {"action": "allow", "os": {"name": "osx", "arch": "x86"}, "features": {"is_demo_user": true}}

A rule list is a conjunction: it is allowed unless one of its rules has a constraint
that is not met, the first failing constraint stops the evaluation. Note that the
action of the rule is parsed but is never used to invert the result, a rule without
any constraint is always satisfied.
"""

import platform

from typing import Optional, Dict, Iterable, Iterator, AbstractSet, Set, Tuple, Any


__all__ = ["Platform", "RuleOs", "Rule", "RuleList", "evaluate", "current_platform"]


# Operating system names that can be given to a rule.
OS_NAMES = ("windows", "linux", "osx")

# Architectures that can be given to a rule, associated to the runtime architectures
# they match.
ARCH_FAMILIES: Dict[str, Tuple[str, ...]] = {
    "x86": ("x86", "x86_64"),
}


class Platform:
    """The operating system and processor architecture against which rules are
    matched. The OS name is one of `OS_NAMES` and the architecture is the name of the
    runtime architecture: "x86", "x86_64", "arm64" or "arm32". Both can be none when
    unknown, in which case nothing matches them.
    """

    __slots__ = "os_name", "arch"

    def __init__(self, os_name: Optional[str], arch: Optional[str]) -> None:
        self.os_name = os_name
        self.arch = arch

    @classmethod
    def current(cls) -> "Platform":
        """Get the platform of the running interpreter.
        """
        return cls(_os_names.get(platform.system()), _arch_names.get(platform.machine().lower()))

    def matches_os(self, os_name: Any) -> bool:
        """Return true if the given OS name, as declared by a rule, is the one of this
        platform. An unknown name never matches.
        """
        return os_name in OS_NAMES and os_name == self.os_name

    def matches_arch(self, arch: Any) -> bool:
        """Return true if the given architecture, as declared by a rule, includes the
        architecture of this platform. An unknown architecture never matches.
        """
        family = ARCH_FAMILIES.get(arch) if isinstance(arch, str) else None
        return family is not None and self.arch in family

    def __eq__(self, other) -> bool:
        return isinstance(other, Platform) and \
            (self.os_name, self.arch) == (other.os_name, other.arch)

    def __hash__(self) -> int:
        return hash((self.os_name, self.arch))

    def __repr__(self) -> str:
        return f"<Platform {self.os_name}/{self.arch}>"


class RuleOs:
    """The platform constraint of a rule, each side is optional.
    """

    __slots__ = "name", "arch"

    def __init__(self, name: Optional[str] = None, arch: Optional[str] = None) -> None:
        self.name = name
        self.arch = arch

    @classmethod
    def from_json(cls, value: Any, path: str) -> "RuleOs":

        if not isinstance(value, dict):
            raise ValueError(f"{path} must be an object")

        name = value.get("name")
        if name is not None and not isinstance(name, str):
            raise ValueError(f"{path}/name must be a string")

        arch = value.get("arch")
        if arch is not None and not isinstance(arch, str):
            raise ValueError(f"{path}/arch must be a string")

        return cls(name, arch)

    def __eq__(self, other) -> bool:
        return isinstance(other, RuleOs) and (self.name, self.arch) == (other.name, other.arch)

    def __repr__(self) -> str:
        return f"<RuleOs name: {self.name}, arch: {self.arch}>"


class Rule:
    """A single rule, with optional platform and features constraints.
    """

    __slots__ = "action", "features", "os"

    def __init__(self, action: str = "allow", *,
        features: Optional[Dict[str, bool]] = None,
        os: Optional[RuleOs] = None
    ) -> None:
        self.action = action
        self.features = None if features is None else dict(features)
        self.os = os

    @classmethod
    def from_json(cls, value: Any, path: str) -> "Rule":

        if not isinstance(value, dict):
            raise ValueError(f"{path} must be an object")

        action = value.get("action")
        if not isinstance(action, str):
            raise ValueError(f"{path}/action must be a string")

        rule_os = value.get("os")
        if rule_os is not None:
            rule_os = RuleOs.from_json(rule_os, f"{path}/os")

        features = value.get("features")
        if features is not None:
            if not isinstance(features, dict):
                raise ValueError(f"{path}/features must be an object")
            for feat_name, feat_expected in features.items():
                if not isinstance(feat_expected, bool):
                    raise ValueError(f"{path}/features/{feat_name} must be a boolean")

        return cls(action, features=features, os=rule_os)

    def __eq__(self, other) -> bool:
        return isinstance(other, Rule) and \
            (self.action, self.features, self.os) == (other.action, other.features, other.os)

    def __repr__(self) -> str:
        return f"<Rule {self.action}, os: {self.os}, features: {self.features}>"


class RuleList:
    """An ordered list of rules guarding a library or an argument.
    """

    __slots__ = "rules",

    def __init__(self, rules: Iterable[Rule] = ()) -> None:
        self.rules = tuple(rules)

    @classmethod
    def from_json(cls, value: Any, path: str) -> "RuleList":
        if not isinstance(value, list):
            raise ValueError(f"{path} must be a list")
        return cls(Rule.from_json(rule, f"{path}/{i}") for i, rule in enumerate(value))

    def evaluate(self, features: AbstractSet[str], platform: Optional[Platform] = None) -> bool:
        """Shortcut for `evaluate(self, features, platform)`.
        """
        return evaluate(self, features, platform)

    def feature_names(self) -> Set[str]:
        """Return the names of all features referenced by these rules.
        """
        names = set()
        for rule in self.rules:
            if rule.features is not None:
                names.update(rule.features.keys())
        return names

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def __eq__(self, other) -> bool:
        return isinstance(other, RuleList) and self.rules == other.rules

    def __repr__(self) -> str:
        return f"<RuleList {list(self.rules)}>"


def evaluate(rules: Iterable[Rule], features: AbstractSet[str], platform: Optional[Platform] = None) -> bool:
    """Evaluate if the given rules allow the item they are guarding. The evaluation
    stops on the first rule that declares an OS name or an architecture not matching
    the platform, or a feature whose state (present or not in the features set) isn't
    the expected one.

    :param rules: The rules to evaluate, in order.
    :param features: The set of enabled features, only used for membership testing.
    :param platform: The platform to match OS and architecture against, defaults to
    the current platform.
    :return: True if allowed.
    """

    if platform is None:
        platform = current_platform

    for rule in rules:

        if rule.os is not None:
            if rule.os.name is not None and not platform.matches_os(rule.os.name):
                return False
            if rule.os.arch is not None and not platform.matches_arch(rule.os.arch):
                return False

        if rule.features is not None:
            for feat_name, feat_expected in rule.features.items():
                if (feat_name in features) != feat_expected:
                    return False

    return True


# Name of the OS as used by rules, given the Python's system name.
_os_names = {
    "Linux": "linux",
    "Windows": "windows",
    "Darwin": "osx",
}

# Name of the runtime architecture, given the Python's machine name.
_arch_names = {
    "i386": "x86",
    "i686": "x86",
    "x86": "x86",
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "arm64": "arm64",
    "aarch64": "arm64",
    "armv7l": "arm32",
    "armv6l": "arm32",
}

# The platform read once when loading this module.
current_platform = Platform.current()
