"""Core Business Logic Module

This module provides the request-handling logic for the users resource,
independent of the HTTP framework.

Architecture:
    - Pure Python (no Flask dependencies in core logic)
    - Testable without HTTP mocking
    - Collaborators (repository, mapper, link builder) injected at construction

Module Structure:
    - models.py           : Entities, transfer objects, page and error containers
    - repository.py       : UserRepository interface + in-memory implementation
    - mapper.py           : Entity <-> transfer object projection
    - validators.py       : Login rule and payload validation
    - patch.py            : JSON Patch interpreter over UpdateUserDto
    - users_controller.py : Per-verb decision table, returns ApiResult
    - audit.py            : Signed JSONL trail of user mutations

Public APIs:
    Controller (webapi.core.users_controller):
        - UsersController.get_user_by_id()
        - UsersController.get_users()
        - UsersController.create_user()
        - UsersController.update_user()
        - UsersController.partially_update_user()
        - UsersController.delete_user()
        - UsersController.get_users_options()
        - ApiResult

    Patch engine (webapi.core.patch):
        - parse_patch_document()
        - apply_patch()
        - MalformedPatchError (exception)
"""
