import numpy as np

from partsnap.core.connectors import Connector
from partsnap.core.parts import PlacedPart
from partsnap.core.shapes import ShapeDescriptor
from partsnap.core.snapping import SnapResolver
from partsnap.core.templates import PartTemplate, SubPart
from partsnap.core.transform import Transform


def _part(ref: int, connectors, origin) -> PlacedPart:
    template = PartTemplate("target", ShapeDescriptor.box((0.5, 0.5, 0.5)), tuple(connectors))
    return PlacedPart(ref, 0, template, Transform.identity(origin))


def test_snaps_connector_onto_opposite_connector() -> None:
    preview = (Connector.named("+X"),)
    target = _part(7, [Connector.named("-X")], (5.0, 0.0, 0.0))
    result = SnapResolver(activation_distance=0.5).resolve(np.array([5.0, 0.0, 0.1]), preview, [target])
    assert result is not None
    assert result.target == 7
    assert result.target_connector.owner == 7
    assert np.allclose(result.transform.origin, [5.0, 0.0, 0.0])
    assert np.allclose(result.transform.R, np.eye(3))
    assert np.isclose(result.distance, 0.1)


def test_snap_origin_subtracts_preview_connector_offset() -> None:
    preview = (Connector.named("-Z", (0.0, 0.0, -0.5)),)
    target = _part(1, [Connector.named("+Z", (0.0, 0.0, 0.5))], (2.0, 3.0, 0.5))
    result = SnapResolver(0.5).resolve(np.array([2.1, 3.0, 1.0]), preview, [target])
    assert result is not None
    assert np.allclose(result.transform.origin, [2.0, 3.0, 1.5])


def test_no_snap_outside_activation_distance() -> None:
    preview = (Connector.named("+X"),)
    target = _part(0, [Connector.named("-X")], (5.0, 0.0, 0.0))
    resolver = SnapResolver(activation_distance=0.5)
    assert resolver.resolve(np.array([5.0, 0.0, 0.6]), preview, [target]) is None
    # exactly on the boundary is excluded as well
    assert resolver.resolve(np.array([5.0, 0.0, 0.5]), preview, [target]) is None


def test_no_snap_without_compatible_pair() -> None:
    preview = (Connector.named("+X"), Connector.named("marker"))
    target = _part(0, [Connector.named("+X"), Connector.named("+Y"), Connector.named("marker")], (0.0, 0.0, 0.0))
    assert SnapResolver(1.0).resolve(np.zeros(3), preview, [target]) is None


def test_no_snap_without_preview_connectors_or_candidates() -> None:
    target = _part(0, [Connector.named("-X")], (0.0, 0.0, 0.0))
    resolver = SnapResolver(1.0)
    assert resolver.resolve(np.zeros(3), (), [target]) is None
    assert resolver.resolve(np.zeros(3), (Connector.named("+X"),), []) is None


def test_closest_connector_wins() -> None:
    preview = (Connector.named("+X"), Connector.named("-Y"))
    far = _part(1, [Connector.named("-X", (0.3, 0.0, 0.0))], (0.0, 0.0, 0.0))
    near = _part(2, [Connector.named("+Y", (0.0, 0.1, 0.0))], (0.0, 0.0, 0.0))
    result = SnapResolver(1.0).resolve(np.zeros(3), preview, [far, near])
    assert result is not None
    assert result.target == 2
    assert result.preview_connector.name == "-Y"
    assert np.allclose(result.transform.origin, [0.0, 0.1, 0.0])


def test_exact_tie_keeps_first_found() -> None:
    preview = (Connector.named("+X"),)
    first = _part(1, [Connector.named("-X", (0.2, 0.0, 0.0))], (0.0, 0.0, 0.0))
    second = _part(2, [Connector.named("-X", (-0.2, 0.0, 0.0))], (0.0, 0.0, 0.0))
    result = SnapResolver(1.0).resolve(np.zeros(3), preview, [first, second])
    assert result is not None and result.target == 1


def test_nested_target_connectors_are_eligible() -> None:
    template = PartTemplate(
        "beam", ShapeDescriptor.box((2.0, 0.25, 0.25)),
        children=(SubPart(offset=np.array([0.0, 0.0, 0.25]), connectors=(Connector.named("+Z_mid"),)),),
    )
    beam = PlacedPart(4, 0, template, Transform.identity((1.0, 1.0, 0.25)))
    preview = (Connector.named("-Z", (0.0, 0.0, -0.5)),)
    result = SnapResolver(0.5).resolve(np.array([1.0, 1.1, 0.5]), preview, [beam])
    assert result is not None
    assert np.allclose(result.transform.origin, [1.0, 1.0, 1.0])
