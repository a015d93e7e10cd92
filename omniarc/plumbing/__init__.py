"""
omniarc.plumbing - script support

(c) 2019--2024 Rob Hagemans
licence: https://opensource.org/licenses/MIT
"""

from .scripting import wrap_main
