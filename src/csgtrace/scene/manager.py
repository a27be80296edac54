"""Unified scene manager for coordinating the scene tables.

This module provides a high-level scene API on top of the Taichi tables
that hold lights, pigments, finishes, shapes and top-level objects. The
SceneManager keeps a Python-side record of everything it registered, so it
can validate cross references, report counts and serialize the scene.

The SceneManager maintains:
- The light list (light 0 is the ambient light)
- Pigment and finish registries referenced by index from objects
- The camera parameters of the scene (eye, look-at, up, vertical fov)
- The top-level objects, each a shape tree with a pigment and a finish

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from src.csgtrace.scene.manager import SceneManager
    >>> from src.csgtrace.scene.shapes import SphereInfo
    >>> scene = SceneManager()
    >>> scene.set_camera((0, 0, 5), (0, 0, 0), (0, 1, 0), 40.0)
    >>> scene.add_light((0, 0, 0), (0.2, 0.2, 0.2))
    >>> scene.add_light((5, 5, 5), (1, 1, 1), (1, 0, 0))
    >>> red = scene.add_solid_pigment((1, 0, 0))
    >>> matte = scene.add_finish(ambient=0.2, diffuse=0.8)
    >>> scene.add_object(SphereInfo((0, 0, 0), 1.0), red, matte)
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np
import numpy.typing as npt

from src.csgtrace.camera.thin_lens import ThinLensCamera, setup_camera
from src.csgtrace.materials.finish import add_finish, clear_finishes
from src.csgtrace.materials.pigment import (
    PigmentKind,
    add_checker_pigment,
    add_solid_pigment,
    add_texture_pigment,
    clear_pigments,
)
from src.csgtrace.materials.texture import load_texture
from src.csgtrace.scene.lights import add_light, clear_lights
from src.csgtrace.scene.primitives import add_object, add_shape, clear_primitives
from src.csgtrace.scene.shapes import Shape, shape_from_dict, shape_to_dict

logger = logging.getLogger(__name__)

Vector3 = tuple[float, float, float]


@dataclass
class SceneCamera:
    """Camera parameters stored with a scene.

    Image size, aperture and focus distance are render settings and are
    supplied when the camera is applied.

    Attributes:
        eye: Camera position.
        look_at: Point the camera looks at.
        up: Up direction.
        fovy: Vertical field of view in degrees.
    """

    eye: Vector3
    look_at: Vector3
    up: Vector3
    fovy: float


@dataclass
class LightInfo:
    """A registered light."""

    position: Vector3
    color: Vector3
    attenuation: Vector3


@dataclass
class PigmentInfo:
    """A registered pigment and the parameters it was created with."""

    kind: PigmentKind
    params: dict[str, Any]


@dataclass
class ObjectInfo:
    """A registered top-level object.

    Attributes:
        shape: The shape tree of the object.
        pigment_index: Pigment used to color the object.
        finish_index: Finish used to shade the object.
        root_node: Root of the flattened tree in the node table.
    """

    shape: Shape
    pigment_index: int
    finish_index: int
    root_node: int


@dataclass
class SceneConfig:
    """Configuration for scene serialization."""

    camera: dict[str, Any] | None = None
    lights: list[dict[str, Any]] = field(default_factory=list)
    pigments: list[dict[str, Any]] = field(default_factory=list)
    finishes: list[dict[str, Any]] = field(default_factory=list)
    objects: list[dict[str, Any]] = field(default_factory=list)


def _vec3(values: Any) -> Vector3:
    return (float(values[0]), float(values[1]), float(values[2]))


class SceneManager:
    """Scene manager coordinating lights, materials, camera and objects.

    Creating a SceneManager clears every scene table; there is one scene
    per Taichi runtime.

    Attributes:
        camera: Camera parameters, or None until set_camera() is called.
        lights: LightInfo for every light; index 0 is the ambient light.
        pigments: PigmentInfo for every pigment.
        finishes: Parameters of every finish.
        objects: ObjectInfo for every top-level object.
    """

    def __init__(self) -> None:
        """Initialize an empty scene."""
        self.camera: SceneCamera | None = None
        self.lights: list[LightInfo] = []
        self.pigments: list[PigmentInfo] = []
        self.finishes: list[dict[str, float]] = []
        self.objects: list[ObjectInfo] = []
        self._clear_all()

    def _clear_all(self) -> None:
        clear_primitives()
        clear_lights()
        clear_pigments()
        clear_finishes()
        self.camera = None
        self.lights.clear()
        self.pigments.clear()
        self.finishes.clear()
        self.objects.clear()

    def clear(self) -> None:
        """Clear the entire scene, Taichi tables included."""
        self._clear_all()

    # =========================================================================
    # Camera and lights
    # =========================================================================

    def set_camera(self, eye: Vector3, look_at: Vector3, up: Vector3, fovy: float) -> None:
        """Set the scene camera.

        Raises:
            ValueError: If fovy is not in (0, 180).
        """
        if not 0.0 < fovy < 180.0:
            raise ValueError(f"Vertical field of view must be in (0, 180) degrees, got {fovy}")
        self.camera = SceneCamera(_vec3(eye), _vec3(look_at), _vec3(up), float(fovy))

    def apply_camera(
        self, aspect_ratio: float, aperture: float = 0.0, focus_distance: float = 10.0
    ) -> None:
        """Upload the scene camera for rendering.

        Raises:
            ValueError: If no camera is set or the camera is degenerate.
        """
        if self.camera is None:
            raise ValueError("Scene has no camera")
        setup_camera(
            ThinLensCamera(
                lookfrom=self.camera.eye,
                lookat=self.camera.look_at,
                vup=self.camera.up,
                vfov=self.camera.fovy,
                aspect_ratio=aspect_ratio,
                aperture=aperture,
                focus_distance=focus_distance,
            )
        )

    def add_light(
        self,
        position: Vector3,
        color: Vector3,
        attenuation: Vector3 = (1.0, 0.0, 0.0),
    ) -> int:
        """Add a light. The first light added is the ambient light.

        Returns:
            The light index.
        """
        index = add_light(position, color, attenuation)
        self.lights.append(LightInfo(_vec3(position), _vec3(color), _vec3(attenuation)))
        return index

    # =========================================================================
    # Materials
    # =========================================================================

    def add_solid_pigment(self, color: Vector3) -> int:
        """Add a constant-color pigment and return its index."""
        index = add_solid_pigment(color)
        self.pigments.append(PigmentInfo(PigmentKind.SOLID, {"color": list(color)}))
        return index

    def add_checker_pigment(self, color1: Vector3, color2: Vector3, scale: float) -> int:
        """Add a checkerboard pigment and return its index."""
        index = add_checker_pigment(color1, color2, scale)
        self.pigments.append(
            PigmentInfo(
                PigmentKind.CHECKER,
                {"color1": list(color1), "color2": list(color2), "scale": scale},
            )
        )
        return index

    def add_texture_pigment(
        self,
        s_projection: tuple[float, float, float, float],
        t_projection: tuple[float, float, float, float],
        path: str | Path | None = None,
        image: npt.NDArray[np.floating] | None = None,
    ) -> int:
        """Add a texture-mapped pigment.

        The texels come from ``image`` when given, otherwise from the file
        at ``path``. A texture that cannot be loaded leaves the pigment
        white.

        Returns:
            The pigment index.
        """
        if image is None and path is not None:
            image = load_texture(path)
        index = add_texture_pigment(image, s_projection, t_projection)
        self.pigments.append(
            PigmentInfo(
                PigmentKind.TEXMAP,
                {
                    "path": None if path is None else str(path),
                    "s_projection": list(s_projection),
                    "t_projection": list(t_projection),
                },
            )
        )
        return index

    def add_finish(
        self,
        ambient: float = 0.0,
        diffuse: float = 0.0,
        specular: float = 0.0,
        shininess: float = 1.0,
        reflectivity: float = 0.0,
        transmissivity: float = 0.0,
        ior: float = 1.0,
    ) -> int:
        """Add a finish and return its index."""
        params = {
            "ambient": ambient,
            "diffuse": diffuse,
            "specular": specular,
            "shininess": shininess,
            "reflectivity": reflectivity,
            "transmissivity": transmissivity,
            "ior": ior,
        }
        index = add_finish(**params)
        self.finishes.append(params)
        return index

    # =========================================================================
    # Objects
    # =========================================================================

    def check_material_indices(self, pigment_index: int, finish_index: int) -> None:
        """Raise ValueError unless both indices name registered entries."""
        if not 0 <= pigment_index < len(self.pigments):
            raise ValueError(
                f"Pigment index {pigment_index} out of range (scene has {len(self.pigments)})"
            )
        if not 0 <= finish_index < len(self.finishes):
            raise ValueError(
                f"Finish index {finish_index} out of range (scene has {len(self.finishes)})"
            )

    def add_object(self, shape: Shape, pigment_index: int, finish_index: int) -> int:
        """Add a top-level object.

        Args:
            shape: Shape tree of the object.
            pigment_index: Index of a registered pigment.
            finish_index: Index of a registered finish.

        Returns:
            The object index.

        Raises:
            ValueError: If an index is out of range or the shape is invalid.
            RuntimeError: If a scene table would overflow.
        """
        self.check_material_indices(pigment_index, finish_index)
        root = add_shape(shape)
        index = add_object(root, pigment_index, finish_index)
        self.objects.append(ObjectInfo(shape, pigment_index, finish_index, root))
        return index

    def validate(self) -> None:
        """Check that the scene can be rendered.

        Raises:
            ValueError: If the scene has no camera or no lights. Light 0
                supplies the ambient term, so a scene needs at least one.
        """
        if self.camera is None:
            raise ValueError("Scene has no camera")
        if not self.lights:
            raise ValueError("Scene has no lights; the first light is the ambient light")

    def get_light_count(self) -> int:
        """Get the number of lights, the ambient light included."""
        return len(self.lights)

    def get_pigment_count(self) -> int:
        """Get the number of pigments."""
        return len(self.pigments)

    def get_finish_count(self) -> int:
        """Get the number of finishes."""
        return len(self.finishes)

    def get_object_count(self) -> int:
        """Get the number of top-level objects."""
        return len(self.objects)

    # =========================================================================
    # Scene Serialization
    # =========================================================================

    def to_config(self) -> SceneConfig:
        """Export the scene to a configuration object.

        Texture pigments are exported by path; texels passed as arrays are
        not serialized.
        """
        config = SceneConfig()
        if self.camera is not None:
            config.camera = {
                "eye": list(self.camera.eye),
                "look_at": list(self.camera.look_at),
                "up": list(self.camera.up),
                "fovy": self.camera.fovy,
            }
        for light in self.lights:
            config.lights.append(
                {
                    "position": list(light.position),
                    "color": list(light.color),
                    "attenuation": list(light.attenuation),
                }
            )
        for pigment in self.pigments:
            config.pigments.append({"type": pigment.kind.name.lower(), **pigment.params})
        for finish in self.finishes:
            config.finishes.append(dict(finish))
        for obj in self.objects:
            config.objects.append(
                {
                    "pigment": obj.pigment_index,
                    "finish": obj.finish_index,
                    "shape": shape_to_dict(obj.shape),
                }
            )
        return config

    def from_config(self, config: SceneConfig) -> None:
        """Load a scene from a configuration object.

        Clears the current scene first.

        Raises:
            ValueError: If the configuration contains invalid data.
        """
        self.clear()

        if config.camera is not None:
            self.set_camera(
                _vec3(config.camera["eye"]),
                _vec3(config.camera["look_at"]),
                _vec3(config.camera["up"]),
                config.camera["fovy"],
            )

        for light in config.lights:
            self.add_light(
                _vec3(light["position"]),
                _vec3(light["color"]),
                _vec3(light.get("attenuation", [1.0, 0.0, 0.0])),
            )

        for pigment in config.pigments:
            kind = pigment.get("type", "").lower()
            if kind == "solid":
                self.add_solid_pigment(_vec3(pigment["color"]))
            elif kind == "checker":
                self.add_checker_pigment(
                    _vec3(pigment["color1"]), _vec3(pigment["color2"]), pigment["scale"]
                )
            elif kind == "texmap":
                self.add_texture_pigment(
                    tuple(pigment["s_projection"]),
                    tuple(pigment["t_projection"]),
                    path=pigment.get("path"),
                )
            else:
                raise ValueError(f"Unknown pigment type: {kind}")

        for finish in config.finishes:
            self.add_finish(**finish)

        for obj in config.objects:
            self.add_object(shape_from_dict(obj["shape"]), obj["pigment"], obj["finish"])

        logger.debug(
            "Loaded scene config: %d lights, %d pigments, %d finishes, %d objects",
            len(self.lights),
            len(self.pigments),
            len(self.finishes),
            len(self.objects),
        )

    def to_dict(self) -> dict[str, Any]:
        """Export the scene to a dictionary (for JSON serialization)."""
        config = self.to_config()
        return {
            "camera": config.camera,
            "lights": config.lights,
            "pigments": config.pigments,
            "finishes": config.finishes,
            "objects": config.objects,
        }

    def from_dict(self, data: dict[str, Any]) -> None:
        """Load a scene from a dictionary produced by to_dict()."""
        config = SceneConfig(
            camera=data.get("camera"),
            lights=data.get("lights", []),
            pigments=data.get("pigments", []),
            finishes=data.get("finishes", []),
            objects=data.get("objects", []),
        )
        self.from_config(config)
