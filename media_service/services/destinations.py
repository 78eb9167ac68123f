"""Per-destination upload policies.

A policy is a pure function from base ``UploadOptions`` to the options the
destination needs. Policies are keyed by category tag; folder rules map the
folder names used by the admin console to a tag when the caller does not name
one explicitly.
"""

from collections.abc import Callable

from media_service.schemas.media import EagerVariant, UploadOptions

DestinationPolicy = Callable[[UploadOptions], UploadOptions]

COURSE_VARIANT_WIDTHS = (1024, 768, 480)


def chat_policy(options: UploadOptions) -> UploadOptions:
    # chat delivery needs the final URL in the upload response
    return options.model_copy(update={"deferred": False})


def course_policy(options: UploadOptions) -> UploadOptions:
    eager = [EagerVariant(width=w, crop="scale") for w in COURSE_VARIANT_WIDTHS]
    return options.model_copy(update={"eager": eager, "eager_async": True})


DESTINATION_POLICIES: dict[str, DestinationPolicy] = {
    "chat": chat_policy,
    "course": course_policy,
}

FOLDER_RULES: list[tuple[str, Callable[[str], bool]]] = [
    ("chat", lambda folder: folder == "chat-images"),
    ("course", lambda folder: "course" in folder),
]


def category_for_folder(folder: str | None) -> str | None:
    if not folder:
        return None
    for category, matches in FOLDER_RULES:
        if matches(folder):
            return category
    return None


def apply_destination_policy(
    options: UploadOptions,
    category: str | None = None,
    policies: dict[str, DestinationPolicy] | None = None,
) -> UploadOptions:
    policies = DESTINATION_POLICIES if policies is None else policies
    tag = category or category_for_folder(options.folder)
    policy = policies.get(tag) if tag else None
    if policy is None:
        return options
    return policy(options)
