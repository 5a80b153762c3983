import json

import pytest

MANIFEST = """\
format_version: 3.0.0
name: nginx
title: Nginx
version: 1.20
description: Collect logs and metrics from Nginx HTTP servers.
type: integration
owner:
  github: elastic/obs-infraobs-integrations
"""

FIELDS = """\
- name: nginx.access
  type: group
  fields:
    - name: remote_ip_list
      type: array
      description: An array of remote IP addresses.
- name: event.dataset
  type: constant_keyword
  description: Event dataset.
"""


@pytest.fixture
def package_root(tmp_path):
    """A minimal integration package with generated docs and a knowledge base."""
    root = tmp_path / "nginx"
    root.mkdir()
    (root / "manifest.yml").write_text(MANIFEST)

    stream = root / "data_stream" / "access"
    (stream / "fields").mkdir(parents=True)
    (stream / "fields" / "fields.yml").write_text(FIELDS)
    (stream / "sample_event.json").write_text(json.dumps({"event": {"dataset": "nginx.access"}}))

    (root / "docs" / "knowledge_base").mkdir(parents=True)
    (root / "docs" / "README.md").write_text("# generated\n")
    (root / "docs" / "knowledge_base" / "notes.md").write_text("vendor notes\n")

    (root / "_dev" / "build" / "docs").mkdir(parents=True)
    return root
