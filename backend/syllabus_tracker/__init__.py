"""Curriculum completion tracking backend: task generation, progress roll-up and scheduling."""
