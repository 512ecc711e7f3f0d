"""Analysis module: tasks and pipelines."""
