"""Jotter static site generator.

This package turns a Jekyll-style source tree (posts, pages, layouts and static
assets) into a deployable website using Markdown and Jinja2 templates.
It can regenerate the site whenever sources change while a preview server is
running, and publish the generated tree to an S3 bucket.

The main entry point is the CLI module, which provides commands for building
the site, serving it with live reload, and deploying it.

Module map:
- content: content model and the source tree scanner.
- permalinks: permalink pattern expansion for posts.
- build: the rendering pipeline that writes the output tree.
- sync: destination directory reconciliation before each build.
- watch: the watch / reload / regenerate coordinator.
- publish: upload of the output tree to object storage.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
