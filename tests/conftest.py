"""Shared fixtures."""
import pytest

VALUES_YAML = """\
# Default values for app.
replicaCount: 1

image:
  repository: ghcr.io/example/app
  # bump: image=ghcr.io/example/app strategy=semver
  tag: "2.3.1"
  pullPolicy: IfNotPresent   # keep

podAnnotations: {}
args: []

containers:
  - name: app
    image:
      tag: v1.0.0
    ports:
      - 80
      - 443
  - name: sidecar
    env:
    - name: MODE
      value: 'fast'

notes: |
  first line

  second line
folded: >-
  some folded
  text
empty:
enabled: true
ratio: 0.5
# trailing comment
"""

CHART_YAML = """\
apiVersion: v2
name: demo
# chart version, bumped automatically
version: 0.3.2
appVersion: "1.0.0" # upstream release
dependencies:
- name: redis
  version: 19.0.0
  repository: https://charts.bitnami.com/bitnami
- name: postgresql
  version: "^12.1.0"
  repository: https://charts.bitnami.com/bitnami
"""


@pytest.fixture
def values_text():
    return VALUES_YAML


@pytest.fixture
def chart_text():
    return CHART_YAML


@pytest.fixture
def chart_dir(tmp_path):
    """A chart directory with Chart.yaml and values.yaml."""
    (tmp_path / "Chart.yaml").write_text(CHART_YAML)
    (tmp_path / "values.yaml").write_text(VALUES_YAML)
    return tmp_path
