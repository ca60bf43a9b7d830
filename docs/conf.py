"""Configuration file for the Sphinx documentation builder."""

import datetime

from xml_validator import __author__, __title__, __version__

# -- Project information -----------------------------------------------------

current_year = str(datetime.date.today().year)
project = __title__
copyright = f"{current_year}, {__author__}"
author = __author__

# The full version, including alpha/beta/rc tags
release = __version__


# -- General configuration ---------------------------------------------------

# Add any Sphinx extension module names here, as strings. They can be
# extensions coming with Sphinx (named 'sphinx.ext.*') or your custom
# ones.
extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.autosummary",
    "sphinx.ext.viewcode",
]

autosummary_generate = True

# -- Options for HTML output -------------------------------------------------

html_theme = "sphinx_rtd_theme"
