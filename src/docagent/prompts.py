# prompts.py
# Prompt templates for the documentation agent.
#
# Templates use string.Template ($name) placeholders so that custom prompt
# files may contain literal braces (JSON, Handlebars) without escaping.

from dataclasses import dataclass
from pathlib import Path
from string import Template

from docagent.models import PackageManifest

SYSTEM_PROMPT = """\
You are a documentation agent working inside one integration package. You act \
only through the tools you are given. Tool results are authoritative: when a \
tool reports an error, read it and adjust instead of repeating the same call. \
When the work is done, reply with a short summary of what you changed.\
"""

INITIAL_PROMPT = """\
You are an expert technical writer producing documentation for an integration \
package. Create or update the file $document by combining what you learn from \
the package source, the README template and the example README.

* Package Name: $name
* Title: $title
* Type: $type
* Version: $version
* Description: $description

Rules you must follow:
1. Only write to $document. Do not modify any other file.
2. Keep everything between <!-- HUMAN-EDITED START --> and <!-- HUMAN-EDITED END -->, \
and between <!-- PRESERVE START --> and <!-- PRESERVE END -->, verbatim and in place.
3. Never invent facts. Where information is missing, insert \
<< INFORMATION NOT AVAILABLE - PLEASE UPDATE >>.

Tools:
- get_readme_template: the structure the README must follow. Call it first.
- get_example_readme: the target style and level of detail.
- list_directory / read_file: explore the package. Paths are relative to the package root \
(use "" for the root).
- write_file: write the finished README to $document.
- validate_url: check every external link before you use it.

Process:
1. Fetch the template and the example.
2. List the package and read the existing $document, if any, noting protected sections.
3. Read manifest.yml, data_stream/*/manifest.yml and data_stream/*/fields/*.yml.
4. Draft the README following the template, in the style of the example.
5. Write it with write_file. Do not paste the README into your reply.
"""

REVISION_PROMPT = """\
You are continuing to work on the documentation of an integration package.

* Package Name: $name
* Title: $title
* Type: $type
* Version: $version
* Description: $description

Rules you must follow:
1. Only write to $document. Do not modify any other file.
2. Keep every protected section (HUMAN-EDITED / PRESERVE markers) verbatim.
3. Start by reading the current $document.
4. Never invent facts; use << INFORMATION NOT AVAILABLE - PLEASE UPDATE >> instead.

Requested changes:
$changes

Make the requested changes, keep the good existing content, and write the \
result to $document with write_file.
"""

FALLBACK_REVISION_PROMPT = "Please make the following changes to the documentation:\n\n$changes"

SECTION_PROMPT = """\
Your previous answer hit the response length limit. Build the README in \
smaller pieces instead.

* Package Name: $name
* Title: $title

1. Call get_readme_template to see the structure.
2. Read the current $document, if any, and keep its protected sections.
3. Write ONLY the next missing major section (start with the Overview if the \
document does not exist yet), keeping it under 1000 words.
4. Write the document with write_file, preserving everything already there.
"""

# Escalating directives for unattended runs that finish without writing.
WRITE_DIRECTIVES = (
    "You haven't updated $document yet. Please write it based on your analysis. "
    "This is required to complete the task.",
    "The task is NOT complete: $document is still unchanged. Call write_file now with "
    "path \"$document\" and the full README content. Do not reply with text only.",
)

ERROR_RETRY_NOTE = (
    "The previous attempt encountered an error. Please try a different approach to "
    "analyze the package and create or update the documentation."
)

NOT_WRITTEN_NOTE = "You haven't written $document yet. Please write it based on your analysis."


@dataclass(frozen=True)
class PromptBuilder:
    """Fills the templates for one package and document path."""

    manifest: PackageManifest | None
    document: str
    initial_template: str = INITIAL_PROMPT
    revision_template: str = REVISION_PROMPT

    @classmethod
    def with_overrides(
        cls,
        manifest: PackageManifest | None,
        document: str,
        initial_file: str | None = None,
        revision_file: str | None = None,
    ) -> "PromptBuilder":
        """Use custom template files (from the provider configuration) where given."""
        return cls(
            manifest,
            document,
            Path(initial_file).expanduser().read_text(encoding="utf-8") if initial_file else INITIAL_PROMPT,
            Path(revision_file).expanduser().read_text(encoding="utf-8") if revision_file else REVISION_PROMPT,
        )

    def _fields(self, **extra: str) -> dict[str, str]:
        fields = {"document": self.document}
        if self.manifest is not None:
            fields.update(
                name=self.manifest.name,
                title=self.manifest.title,
                type=self.manifest.type,
                version=self.manifest.version,
                description=self.manifest.description,
            )
        fields.update(extra)
        return fields

    def initial(self) -> str:
        return Template(self.initial_template).safe_substitute(self._fields())

    def revision(self, changes: str) -> str:
        if self.manifest is None:
            return Template(FALLBACK_REVISION_PROMPT).safe_substitute(changes=changes)
        return Template(self.revision_template).safe_substitute(self._fields(changes=changes))

    def section(self) -> str:
        return Template(SECTION_PROMPT).safe_substitute(self._fields())

    def write_directive(self, attempt: int) -> str:
        """Directive for the given retry (1-based); later retries are more explicit."""
        index = min(max(attempt, 1), len(WRITE_DIRECTIVES)) - 1
        return Template(WRITE_DIRECTIVES[index]).safe_substitute(self._fields())

    def not_written(self) -> str:
        return self.revision(Template(NOT_WRITTEN_NOTE).safe_substitute(self._fields()))

    def error_retry(self) -> str:
        return self.revision(ERROR_RETRY_NOTE)
