"""Build and render Slurm cluster node reports grouped by feature or by node state."""

__version__ = "0.2.1"