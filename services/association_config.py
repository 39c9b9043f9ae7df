"""
Association Cache - Declaration File

Entity types and associations declared in YAML and applied to an
AssociationCache at startup. Everything is validated before the service
serves a single lookup.

    types:
      - {name: Account, table: accounts}
      - {name: User, table: users}
      - {name: Admin, parent: User}
    associations:
      - {owner: User, kind: belongs_to, name: account, cached: true}
      - {owner: Account, kind: has_many, name: users, cached: true, order: users.name}
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class TypeDeclaration:
    name: str
    table: Optional[str] = None
    parent: Optional[str] = None


@dataclass
class AssociationDeclaration:
    owner: str
    kind: str
    name: str
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AssociationConfig:
    """Parsed declaration file."""
    types: List[TypeDeclaration]
    associations: List[AssociationDeclaration]

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'AssociationConfig':
        """Create AssociationConfig from dictionary (parsed YAML)."""
        data = data or {}
        unknown = set(data) - {'types', 'associations'}
        if unknown:
            raise ConfigurationError(f"Unknown sections in association config: {sorted(unknown)}")

        types = []
        for i, t in enumerate(data.get('types') or []):
            if not isinstance(t, dict) or 'name' not in t:
                raise ConfigurationError(f"Type declaration {i} missing required field 'name'", config_key='types')
            if not t.get('table') and not t.get('parent'):
                raise ConfigurationError(
                    f"Type '{t['name']}' needs a table or a parent",
                    config_key=t['name'],
                )
            types.append(TypeDeclaration(name=t['name'], table=t.get('table'), parent=t.get('parent')))

        associations = []
        for i, a in enumerate(data.get('associations') or []):
            if not isinstance(a, dict) or not all(k in a for k in ['owner', 'kind', 'name']):
                raise ConfigurationError(
                    f"Association {i} missing required fields (owner, kind, name)",
                    config_key='associations',
                )
            options = {k: v for k, v in a.items() if k not in ('owner', 'kind', 'name')}
            associations.append(AssociationDeclaration(
                owner=a['owner'],
                kind=a['kind'],
                name=a['name'],
                options=options,
            ))

        return cls(types=types, associations=associations)

    @classmethod
    def from_yaml(cls, path: Path) -> 'AssociationConfig':
        """Load and validate config from YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Association config not found: {path}", config_key='ASSOCIATIONS_CONFIG')

        with open(path, 'r') as f:
            data = yaml.safe_load(f)

        return cls.from_dict(data)

    def apply(self, association_cache) -> None:
        """Register every declared type, then every association."""
        for t in self.types:
            if association_cache.types.is_registered(t.name):
                continue
            association_cache.types.define(t.name, table=t.table, parent=t.parent)

        for a in self.associations:
            association_cache.register(a.owner, a.kind, a.name, **a.options)

        logger.info(
            "Applied association config: %d types, %d associations",
            len(self.types), len(self.associations),
        )
