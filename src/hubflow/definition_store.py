"""
This module provides the `FlowDefinitionStore` class, which keeps the versioned flow
definitions of every integration domain.

Versions are numbered per domain starting at 1 and never reused. At most one version per
domain is active; creating or activating a version deactivates the previous active one
inside the same locked section. Definitions can be seeded from YAML files, one definition
per file:

    integration_domain: my_light
    is_active: true
    definition:
      name: My Light
      steps:
        - step_id: user
          title: Connect
          schema:
            host: {type: string, label: Host, required: true}
"""

import logging
import os
from threading import RLock
import uuid

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .constants import HANDLER_KIND_MANUAL, HANDLER_KIND_WIZARD
from .definition_validator import validate_flow_definition
from .exceptions import DefinitionError, NotFound
from .models import FlowDefinition, steps_from_definition, utcnow

logger = logging.getLogger("__main__")
logger.info("[DEFINITIONS] loading module ")


class FlowDefinitionStore:
    """
    In-memory store of flow definitions, guarded by a re-entrant lock so activation and
    version numbering happen atomically.
    """

    def __init__(self):
        self._definitions = {}
        self._lock = RLock()

    def create_flow_definition(
        self,
        integration_domain,
        definition,
        flow_type=None,
        description=None,
        is_active=True,
        is_default=False,
        created_by=None,
    ):
        """
        Validate and store a new version of a domain's flow definition.

        Args:
            integration_domain (str): Domain the definition belongs to.
            definition (dict): Definition body with `name`, `steps` and optional
                `flow_type`, `description` and `initial_step`.
            is_active (bool): Make this the active version of the domain.
            is_default (bool): Make this the default version of the domain.

        Returns:
            FlowDefinition: The stored definition with its assigned version.

        Raises:
            DefinitionError: If the definition is malformed.
        """
        validate_flow_definition(definition)
        steps = steps_from_definition(definition["steps"])
        if flow_type is None:
            flow_type = definition.get("flow_type") or (
                HANDLER_KIND_MANUAL if len(steps) == 1 else HANDLER_KIND_WIZARD
            )

        with self._lock:
            versions = self._domain_definitions(integration_domain)
            version = max((item.version for item in versions), default=0) + 1
            if is_active:
                for item in versions:
                    if item.is_active:
                        item.is_active = False
                        item.updated_at = utcnow()
            if is_default:
                for item in versions:
                    item.is_default = False

            flow_definition = FlowDefinition(
                id=uuid.uuid4().hex,
                integration_domain=integration_domain,
                version=version,
                name=definition["name"],
                steps=steps,
                flow_type=flow_type,
                description=description or definition.get("description", ""),
                initial_step=definition.get("initial_step"),
                is_active=is_active,
                is_default=is_default,
                created_by=created_by,
            )
            self._definitions[flow_definition.id] = flow_definition

        logger.info(
            "[DEFINITIONS] Created %s version %s (active: %s)",
            integration_domain,
            version,
            is_active,
        )
        return flow_definition

    def _domain_definitions(self, integration_domain):
        return [
            item
            for item in self._definitions.values()
            if item.integration_domain == integration_domain
        ]

    def get_flow_definition_by_id(self, definition_id):
        definition = self._definitions.get(definition_id)
        if definition is None:
            raise NotFound(f"Flow definition {definition_id} not found")
        return definition

    def get_active_flow_definition(self, integration_domain):
        """Return the active definition of a domain, or None."""
        with self._lock:
            for item in self._domain_definitions(integration_domain):
                if item.is_active:
                    return item
        return None

    def get_flow_definition(self, integration_domain, version=None):
        """
        Return a specific version, or the active version falling back to the default one.
        Returns None when the domain has no usable definition.
        """
        with self._lock:
            versions = self._domain_definitions(integration_domain)
            if version is not None:
                for item in versions:
                    if item.version == version:
                        return item
                return None
            for item in versions:
                if item.is_active:
                    return item
            for item in versions:
                if item.is_default:
                    return item
        return None

    def get_flow_definition_versions(self, integration_domain):
        """All versions of a domain, newest first."""
        with self._lock:
            return sorted(
                self._domain_definitions(integration_domain),
                key=lambda item: item.version,
                reverse=True,
            )

    def activate_flow_definition(self, definition_id):
        with self._lock:
            definition = self.get_flow_definition_by_id(definition_id)
            for item in self._domain_definitions(definition.integration_domain):
                if item.is_active and item.id != definition.id:
                    item.is_active = False
                    item.updated_at = utcnow()
            definition.is_active = True
            definition.updated_at = utcnow()
        logger.info(
            "[DEFINITIONS] Activated %s version %s",
            definition.integration_domain,
            definition.version,
        )
        return definition

    def deactivate_flow_definition(self, definition_id):
        with self._lock:
            definition = self.get_flow_definition_by_id(definition_id)
            definition.is_active = False
            definition.updated_at = utcnow()
        return definition

    def set_default_flow_definition(self, definition_id):
        with self._lock:
            definition = self.get_flow_definition_by_id(definition_id)
            for item in self._domain_definitions(definition.integration_domain):
                item.is_default = item.id == definition.id
            definition.updated_at = utcnow()
        return definition

    def delete_flow_definition(self, definition_id):
        with self._lock:
            definition = self.get_flow_definition_by_id(definition_id)
            del self._definitions[definition_id]
        logger.info(
            "[DEFINITIONS] Deleted %s version %s",
            definition.integration_domain,
            definition.version,
        )

    def list_flow_definitions(self, filters=None, page=1, limit=50):
        """
        List definitions matching `filters` (integration_domain, flow_type, is_active,
        is_default), ordered by domain then newest version first.

        Returns:
            dict: `items`, `total`, `page` and `limit`.
        """
        filters = filters or {}
        with self._lock:
            items = [
                item
                for item in self._definitions.values()
                if all(
                    getattr(item, key) == value
                    for key, value in filters.items()
                    if value is not None
                )
            ]
        items.sort(key=lambda item: (item.integration_domain, -item.version))
        start = (max(page, 1) - 1) * limit
        return {
            "items": items[start : start + limit],
            "total": len(items),
            "page": page,
            "limit": limit,
        }

    def load_definitions_from_dir(self, definitions_dir):
        """
        Load every `*.yaml` file in `definitions_dir` as a new definition version.
        Invalid files are logged and skipped.

        Returns:
            int: Number of definitions loaded.
        """
        if not os.path.isdir(definitions_dir):
            logger.debug("[DEFINITIONS] No definitions directory at %s", definitions_dir)
            return 0

        yaml = YAML(typ="safe")
        loaded = 0
        for file_name in sorted(os.listdir(definitions_dir)):
            if not file_name.endswith((".yaml", ".yml")):
                continue
            path = os.path.join(definitions_dir, file_name)
            try:
                with open(path, "r", encoding="utf-8") as f:
                    content = yaml.load(f) or {}
                self.create_flow_definition(
                    content["integration_domain"],
                    content["definition"],
                    flow_type=content.get("flow_type"),
                    description=content.get("description"),
                    is_active=content.get("is_active", True),
                    is_default=content.get("is_default", False),
                    created_by=content.get("created_by", file_name),
                )
                loaded += 1
            except YAMLError as err:
                logger.error("[DEFINITIONS] %s is not valid YAML: %s", file_name, err)
            except KeyError as err:
                logger.error("[DEFINITIONS] %s is missing key %s", file_name, err)
            except DefinitionError as err:
                logger.error("[DEFINITIONS] %s is invalid: %s", file_name, err)
        logger.info(
            "[DEFINITIONS] Loaded %s definition(s) from %s", loaded, definitions_dir
        )
        return loaded
