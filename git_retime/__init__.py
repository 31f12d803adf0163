"""
git-retime - Interactive commit timestamp control for git.

A terminal interview toolkit that lets you amend or rewrite the timestamps of
local commits before committing or pushing, with backup references and
protected-branch confirmation around every history rewrite.
"""

__version__ = "0.1.0"
__author__ = "git-retime contributors"
