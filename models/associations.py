"""
Association Cache - Association Descriptors

Descriptors are configuration values, not mutable state. They are built
once at registration time from the recognised association options and
handed to the loader picked for their kind.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from errors import ConfigurationError, UnknownEntityTypeError

BELONGS_TO = "belongs_to"
HAS_MANY = "has_many"
HAS_AND_BELONGS_TO_MANY = "has_and_belongs_to_many"

# Options shared by every kind; anything else is rejected
_COMMON_OPTIONS = {"cached", "foreign_key", "class_name"}
_COLLECTION_OPTIONS = _COMMON_OPTIONS | {"finder_sql", "order", "conditions"}

ALLOWED_OPTIONS = {
    BELONGS_TO: _COMMON_OPTIONS,
    HAS_MANY: _COLLECTION_OPTIONS | {"through", "source_foreign_key"},
    HAS_AND_BELONGS_TO_MANY: _COLLECTION_OPTIONS | {"join_table", "association_foreign_key"},
}


@dataclass(frozen=True)
class BelongsTo:
    name: str
    foreign_key: str
    target_type: str
    cached: bool = False


@dataclass(frozen=True)
class HasMany:
    name: str
    foreign_key: str
    target_type: str
    cached: bool = False
    finder_sql: Optional[str] = None
    order: Optional[str] = None
    conditions: Optional[str] = None
    through: Optional[str] = None
    source_foreign_key: Optional[str] = None


@dataclass(frozen=True)
class HasAndBelongsToMany:
    name: str
    join_table: str
    foreign_key: str
    association_foreign_key: str
    target_type: str
    cached: bool = False
    finder_sql: Optional[str] = None
    order: Optional[str] = None
    conditions: Optional[str] = None


AssociationDescriptor = Union[BelongsTo, HasMany, HasAndBelongsToMany]


def underscore(type_name: str) -> str:
    """'LineItem' -> 'line_item'"""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", type_name).lower()


def singularize(word: str) -> str:
    if word.endswith("ies"):
        return word[:-3] + "y"
    if word.endswith("ses") or word.endswith("xes"):
        return word[:-2]
    if word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def classify(name: str, singular: bool = True) -> str:
    """'line_items' -> 'LineItem'"""
    if singular:
        name = singularize(name)
    return "".join(part.capitalize() for part in name.split("_"))


def build_descriptor(
    kind: str,
    owner_type: str,
    name: str,
    options: Dict[str, Any],
    table_for: Callable[[str], str],
) -> AssociationDescriptor:
    """
    Resolve association options into a descriptor.

    Args:
        kind: belongs_to, has_many or has_and_belongs_to_many
        owner_type: Declaring entity type name
        name: Association name
        options: Recognised association options
        table_for: Resolves a registered type name to its table

    Raises:
        ConfigurationError: Unknown kind or option, or unresolvable join table
    """
    if kind not in ALLOWED_OPTIONS:
        raise ConfigurationError(f"Unknown association kind '{kind}'", config_key="kind")

    unknown = set(options) - ALLOWED_OPTIONS[kind]
    if unknown:
        raise ConfigurationError(
            f"Unknown options for {owner_type}.{name}: {sorted(unknown)}",
            config_key=name,
        )

    cached = bool(options.get("cached", False))

    if kind == BELONGS_TO:
        return BelongsTo(
            name=name,
            foreign_key=options.get("foreign_key") or f"{name}_id",
            target_type=options.get("class_name") or classify(name, singular=False),
            cached=cached,
        )

    target_type = options.get("class_name") or classify(name)

    if kind == HAS_MANY:
        return HasMany(
            name=name,
            foreign_key=options.get("foreign_key") or f"{underscore(owner_type)}_id",
            target_type=target_type,
            cached=cached,
            finder_sql=options.get("finder_sql"),
            order=options.get("order"),
            conditions=options.get("conditions"),
            through=options.get("through"),
            source_foreign_key=options.get("source_foreign_key"),
        )

    join_table = options.get("join_table")
    if not join_table:
        try:
            join_table = "_".join(sorted([table_for(owner_type), table_for(target_type)]))
        except (ConfigurationError, UnknownEntityTypeError) as e:
            raise ConfigurationError(
                f"Cannot resolve join table for {owner_type}.{name}: {e.message}",
                config_key="join_table",
            ) from e

    return HasAndBelongsToMany(
        name=name,
        join_table=join_table,
        foreign_key=options.get("foreign_key") or f"{underscore(owner_type)}_id",
        association_foreign_key=(
            options.get("association_foreign_key") or f"{underscore(target_type)}_id"
        ),
        target_type=target_type,
        cached=cached,
        finder_sql=options.get("finder_sql"),
        order=options.get("order"),
        conditions=options.get("conditions"),
    )
