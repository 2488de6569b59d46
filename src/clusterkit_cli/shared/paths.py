"""Path management for clusterkit-cli.

Manages the ~/.clusterkit/ directory.
"""

from pathlib import Path

# Base directory for all clusterkit data
CLUSTERKIT_DIR = Path.home() / ".clusterkit"

# Persistent CLI configuration
CONFIG_FILE = CLUSTERKIT_DIR / "config.yaml"

# Default kubeconfig written by the cluster provisioner
DEFAULT_KUBECONFIG = Path.home() / ".kube" / "config"
