"""TemplateResolver - finds the one pod template a job refers to."""

import re

from .errors import K8sRunError, TemplateAmbiguous, TemplateLookupFailure, TemplateNotFound
from .platform.base import TemplateCatalog
from .protocol import Job, Template

LABEL_DOMAIN = "k8srun.yashkov.org"
PREFIX_LABEL = f"{LABEL_DOMAIN}/prefix"
CONFIG_LABEL = f"{LABEL_DOMAIN}/config"
INSTANCE_LABEL = f"{LABEL_DOMAIN}/instance"

_ALNUM_PREFIX = re.compile(r"[0-9a-z]+")


def prefix(name: str) -> str:
    """Leading run of alphanumeric characters of the lower-cased *name*.

    ``"Build123-x"`` -> ``"build123"``; a name starting with a
    non-alphanumeric character has an empty prefix.
    """
    match = _ALNUM_PREFIX.match(name.lower())
    return match.group(0) if match else ""


def selector_for(job: Job) -> dict[str, str]:
    """The three-label selector identifying *job*'s template."""
    return {
        PREFIX_LABEL: prefix(job.name),
        CONFIG_LABEL: job.config,
        INSTANCE_LABEL: job.instance.lower(),
    }


class TemplateResolver:
    """Selects exactly one template by label equality, or fails."""

    def __init__(self, catalog: TemplateCatalog, default_namespace: str = "default"):
        self.catalog = catalog
        self.default_namespace = default_namespace

    def namespace_for(self, job: Job) -> str:
        return job.namespace or self.default_namespace

    def resolve(self, job: Job) -> Template:
        """Return the single matching template.

        Raises:
            TemplateNotFound: nothing matched.
            TemplateAmbiguous: more than one template matched.
            TemplateLookupFailure: the listing itself failed.
        """
        namespace = self.namespace_for(job)
        selector = selector_for(job)

        try:
            templates = self.catalog.list_templates(namespace, selector)
        except K8sRunError:
            raise
        except Exception as e:
            raise TemplateLookupFailure(
                f"unable to list pod templates in {namespace!r} namespace: {e}"
            ) from e

        if not templates:
            raise TemplateNotFound(namespace, selector)
        if len(templates) > 1:
            raise TemplateAmbiguous(namespace, selector, [t.name for t in templates])
        return templates[0]
