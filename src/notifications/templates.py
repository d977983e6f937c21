"""
Loader for Slack message templates.

Templates live in a YAML mapping of name -> Jinja2 template string and
are cached after the first load.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import jinja2
import yaml

from src.utils.logger import StructuredLogger

DEFAULT_TEMPLATE_PATH = Path(__file__).resolve().parent / "parity_templates.yaml"


class SlackTemplateLoader:
    """
    Loader for Slack message templates from YAML configuration.

    Supports Jinja2 template rendering with variable substitution.
    Templates are cached in memory after first load.
    """

    def __init__(
        self,
        template_path: Union[str, Path] = DEFAULT_TEMPLATE_PATH,
        logger: Optional[StructuredLogger] = None,
    ):
        self.template_path = Path(template_path)
        self.logger = logger
        self._templates: Dict[str, str] = {}
        self._loaded = False

    def load_templates(self) -> None:
        """Load all templates from the YAML file."""
        if self._loaded:
            return

        try:
            with open(self.template_path, "r", encoding="utf-8") as f:
                content = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            if self.logger:
                self.logger.error(
                    f"Failed to load Slack templates: {self.template_path}",
                    operation="load_slack_templates",
                    error=str(e),
                )
            raise

        if not isinstance(content, dict):
            raise ValueError(f"Slack templates file must hold a mapping: {self.template_path}")

        self._templates = content
        self._loaded = True
        if self.logger:
            self.logger.debug(
                f"Loaded {len(self._templates)} Slack templates",
                operation="load_slack_templates",
            )

    def render(self, template_name: str, **context: Any) -> str:
        """
        Render a template with context variables.

        Raises:
            ValueError: If template not found
            jinja2.TemplateError: If template rendering fails
        """
        if not self._loaded:
            self.load_templates()

        if template_name not in self._templates:
            raise ValueError(
                f"Template '{template_name}' not found. Available: {list(self._templates.keys())}"
            )

        try:
            template = jinja2.Template(self._templates[template_name])
            return template.render(**context)
        except jinja2.TemplateError as e:
            if self.logger:
                self.logger.error(
                    f"Failed to render Slack template '{template_name}'",
                    operation="render_slack_template",
                    error=str(e),
                )
            raise

    def get_template_names(self) -> List[str]:
        if not self._loaded:
            self.load_templates()
        return list(self._templates.keys())
