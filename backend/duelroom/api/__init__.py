"""HTTP control plane blueprints."""
