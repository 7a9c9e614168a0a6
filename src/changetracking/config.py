"""
Process-wide defaults for wrapping nested values.

Explicit arguments to ``as_trackable()`` and ``TrackableCollection`` always win;
these defaults apply when an argument is left as None.
"""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TrackingOptions:
    """Switches controlling recursive wrapping of field values.

    make_complex_properties_trackable: wrap dataclass-valued fields as tracked objects
    make_collection_properties_trackable: wrap list-of-dataclass fields as TrackableCollection
    """
    make_complex_properties_trackable: bool = True
    make_collection_properties_trackable: bool = True


_default_options: TrackingOptions = TrackingOptions()


def set_default_tracking_options(options: TrackingOptions) -> None:
    """Replace the process-wide default options."""
    global _default_options
    _default_options = options


def get_default_tracking_options() -> TrackingOptions:
    """Get the process-wide default options."""
    return _default_options


def resolve_tracking_options(
    make_complex_properties_trackable: Optional[bool] = None,
    make_collection_properties_trackable: Optional[bool] = None,
) -> TrackingOptions:
    """Merge explicit switches over the defaults. None means "use the default"."""
    defaults = _default_options
    return TrackingOptions(
        make_complex_properties_trackable=(
            defaults.make_complex_properties_trackable
            if make_complex_properties_trackable is None
            else make_complex_properties_trackable
        ),
        make_collection_properties_trackable=(
            defaults.make_collection_properties_trackable
            if make_collection_properties_trackable is None
            else make_collection_properties_trackable
        ),
    )
