"""Arguments lists as found in the `/arguments/jvm` and `/arguments/game` sections of
version's metadata. Each argument is either a plain string or an object guarded by
rules, whose value is a string or a list of strings.
"""

from .rules import Platform, RuleList, evaluate

from typing import Optional, Union, List, Iterable, Iterator, AbstractSet, Set, Any


__all__ = ["Argument", "PlainArgument", "RuledArgument", "ArgumentList",
           "construct_arguments", "feature_set"]


class Argument:
    """Base class for an argument entry.
    """

    __slots__ = tuple()

    def expand(self, features: AbstractSet[str], platform: Optional[Platform] = None) -> List[str]:
        """Return the strings this argument expands to, may be empty.
        """
        raise NotImplementedError


class PlainArgument(Argument):
    """An argument that is always included.
    """

    __slots__ = "value",

    def __init__(self, value: str) -> None:
        self.value = value

    def expand(self, features: AbstractSet[str], platform: Optional[Platform] = None) -> List[str]:
        return [self.value]

    def __eq__(self, other) -> bool:
        return isinstance(other, PlainArgument) and self.value == other.value

    def __repr__(self) -> str:
        return f"<PlainArgument {self.value!r}>"


class RuledArgument(Argument):
    """An argument with one or more values, only included if its rules allow it.
    """

    __slots__ = "rules", "value"

    def __init__(self, rules: RuleList, value: Union[str, List[str]]) -> None:
        self.rules = rules
        self.value = value

    def values(self) -> List[str]:
        """Return the values of this argument, as a list even for single value.
        """
        return [self.value] if isinstance(self.value, str) else list(self.value)

    def expand(self, features: AbstractSet[str], platform: Optional[Platform] = None) -> List[str]:
        if evaluate(self.rules, features, platform):
            return self.values()
        return []

    def __eq__(self, other) -> bool:
        return isinstance(other, RuledArgument) and \
            (self.rules, self.value) == (other.rules, other.value)

    def __repr__(self) -> str:
        return f"<RuledArgument {self.value!r}, rules: {self.rules}>"


class ArgumentList:
    """An ordered list of arguments.
    """

    __slots__ = "arguments",

    def __init__(self, arguments: Iterable[Argument] = ()) -> None:
        self.arguments = tuple(arguments)

    @classmethod
    def from_json(cls, value: Any, path: str) -> "ArgumentList":
        """Parse a list of arguments from a metadata JSON value, the given path is used
        in error messages.
        """

        if not isinstance(value, list):
            raise ValueError(f"{path} must be a list")

        arguments: List[Argument] = []
        for i, arg in enumerate(value):

            if isinstance(arg, str):
                arguments.append(PlainArgument(arg))
            elif isinstance(arg, dict):

                # Absent rules is the same as no rule at all.
                rules = arg.get("rules")
                rules = RuleList() if rules is None else RuleList.from_json(rules, f"{path}/{i}/rules")

                arg_value = arg.get("value")
                if isinstance(arg_value, list):
                    if not all(isinstance(v, str) for v in arg_value):
                        raise ValueError(f"{path}/{i}/value must only contain strings")
                elif not isinstance(arg_value, str):
                    raise ValueError(f"{path}/{i}/value must be a list or a string")

                arguments.append(RuledArgument(rules, arg_value))
            else:
                raise ValueError(f"{path}/{i} must be an object or a string")

        return cls(arguments)

    def construct(self, features: AbstractSet[str], platform: Optional[Platform] = None) -> List[str]:
        """Shortcut for `construct_arguments(self, features, platform)`.
        """
        return construct_arguments(self, features, platform)

    def feature_set(self) -> Set[str]:
        """Shortcut for `feature_set(self)`.
        """
        return feature_set(self)

    def __iter__(self) -> Iterator[Argument]:
        return iter(self.arguments)

    def __len__(self) -> int:
        return len(self.arguments)

    def __eq__(self, other) -> bool:
        return isinstance(other, ArgumentList) and self.arguments == other.arguments

    def __repr__(self) -> str:
        return f"<ArgumentList {list(self.arguments)}>"


def construct_arguments(args: Iterable[Argument], features: AbstractSet[str],
    platform: Optional[Platform] = None
) -> List[str]:
    """Expand a list of arguments into the flat list of strings to give to the command
    line. Declaration order is kept, ruled arguments that are not allowed are skipped.
    """
    result = []
    for arg in args:
        result.extend(arg.expand(features, platform))
    return result


def feature_set(args: Iterable[Argument]) -> Set[str]:
    """Return all features names referenced by the rules of the given arguments, even
    those whose rules never allow the argument.
    """
    result = set()
    for arg in args:
        if isinstance(arg, RuledArgument):
            result.update(arg.rules.feature_names())
    return result
