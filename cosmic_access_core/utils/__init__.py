"""
Utility modules for the access token core.

Import from the submodules directly (``utils.logger``, ``utils.crud_helpers``,
``utils.token_id_utils``, ...); this package does not re-export them because
the logger is needed while the db and schema packages are still loading.
"""
