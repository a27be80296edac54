"""Reader for the whitespace-separated scene text format.

A scene file holds, in order:

1. Camera: eye (3 numbers), look-at (3), up (3), vertical fov in degrees.
2. Lights: a count, then per light position (3), color (3) and attenuation
   (constant, linear, quadratic). The first light is the ambient light.
3. Pigments: a count, then per pigment one of::

       solid r g b
       checker r1 g1 b1 r2 g2 b2 scale
       texmap path s0 s1 s2 s3 t0 t1 t2 t3

4. Finishes: a count, then per finish ``ka kd ks alpha kr kt ior``.
5. Objects: a count, then per object ``pigment finish`` followed by one of::

       sphere cx cy cz r
       polyhedron n (a b c d) * n
       quadric A B C D E F G H I J
       csg n (op object) * n

   where op is ``+`` (union) or ``-`` (difference) and each CSG child is a
   full object record. Only the pigment and finish of a top-level object
   are used to shade it.

Tokens may be split across lines freely.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from src.csgtrace.scene.manager import SceneManager
from src.csgtrace.scene.shapes import (
    CSGChild,
    CSGInfo,
    CSGOperation,
    PolyhedronInfo,
    QuadricInfo,
    Shape,
    SphereInfo,
)

logger = logging.getLogger(__name__)

CSG_OPERATORS = {"+": CSGOperation.UNION, "-": CSGOperation.DIFFERENCE}


class SceneFormatError(ValueError):
    """Malformed scene file content.

    Attributes:
        path: The scene file.
        line: 1-based line of the offending token (0 at end of file).
        column: 1-based column of the offending token (0 at end of file).
    """

    def __init__(self, message: str, path: str | Path, line: int = 0, column: int = 0) -> None:
        self.path = str(path)
        self.line = line
        self.column = column
        where = f"{path}:{line}:{column}" if line > 0 else f"{path}: end of file"
        super().__init__(f"{where}: {message}")


@dataclass
class _Token:
    text: str
    line: int
    column: int


def _tokenize(text: str) -> list[_Token]:
    tokens = []
    for line_no, line in enumerate(text.splitlines(), start=1):
        column = 0
        for part in line.split():
            column = line.index(part, column)
            tokens.append(_Token(part, line_no, column + 1))
            column += len(part)
    return tokens


class _TokenReader:
    """Sequential access to the tokens of one scene file."""

    def __init__(self, tokens: list[_Token], path: Path) -> None:
        self._tokens = tokens
        self._pos = 0
        self.path = path

    @property
    def remaining(self) -> int:
        return len(self._tokens) - self._pos

    def error(self, message: str, token: _Token | None = None) -> SceneFormatError:
        if token is None:
            return SceneFormatError(message, self.path)
        return SceneFormatError(message, self.path, token.line, token.column)

    def peek(self, what: str) -> _Token:
        if self._pos >= len(self._tokens):
            raise self.error(f"unexpected end of file, expected {what}")
        return self._tokens[self._pos]

    def next(self, what: str) -> _Token:
        token = self.peek(what)
        self._pos += 1
        return token

    def word(self, what: str) -> str:
        return self.next(what).text

    def number(self, what: str) -> float:
        token = self.next(what)
        try:
            return float(token.text)
        except ValueError:
            raise self.error(f"expected {what}, got {token.text!r}", token) from None

    def integer(self, what: str) -> int:
        token = self.next(what)
        try:
            return int(token.text)
        except ValueError:
            raise self.error(f"expected {what}, got {token.text!r}", token) from None

    def count(self, what: str) -> int:
        token = self.next(f"number of {what}")
        try:
            value = int(token.text)
        except ValueError:
            raise self.error(f"expected number of {what}, got {token.text!r}", token) from None
        if value < 0:
            raise self.error(f"number of {what} must be non-negative, got {value}", token)
        return value

    def vector(self, what: str) -> tuple[float, float, float]:
        return (self.number(what), self.number(what), self.number(what))

    def numbers(self, n: int, what: str) -> tuple[float, ...]:
        return tuple(self.number(what) for _ in range(n))


def _read_camera(reader: _TokenReader, scene: SceneManager) -> None:
    eye = reader.vector("camera eye")
    look_at = reader.vector("camera look-at")
    up = reader.vector("camera up vector")
    fovy_token = reader.next("field of view")
    try:
        fovy = float(fovy_token.text)
    except ValueError:
        raise reader.error(f"expected field of view, got {fovy_token.text!r}", fovy_token) from None
    try:
        scene.set_camera(eye, look_at, up, fovy)
    except ValueError as exc:
        raise reader.error(str(exc), fovy_token) from exc


def _read_lights(reader: _TokenReader, scene: SceneManager) -> None:
    for _ in range(reader.count("lights")):
        start = reader.peek("light position")
        position = reader.vector("light position")
        color = reader.vector("light color")
        attenuation = reader.vector("light attenuation")
        try:
            scene.add_light(position, color, attenuation)
        except ValueError as exc:
            raise reader.error(str(exc), start) from exc


def _read_pigments(reader: _TokenReader, scene: SceneManager, base_dir: Path) -> None:
    for _ in range(reader.count("pigments")):
        token = reader.next("pigment type")
        try:
            if token.text == "solid":
                scene.add_solid_pigment(reader.vector("pigment color"))
            elif token.text == "checker":
                color1 = reader.vector("checker color")
                color2 = reader.vector("checker color")
                scene.add_checker_pigment(color1, color2, reader.number("checker scale"))
            elif token.text == "texmap":
                path = Path(reader.word("texture path"))
                s_projection = reader.numbers(4, "texture projection")
                t_projection = reader.numbers(4, "texture projection")
                if not path.is_absolute() and not path.exists():
                    path = base_dir / path
                scene.add_texture_pigment(s_projection, t_projection, path=path)
            else:
                raise reader.error(f"unknown pigment type {token.text!r}", token)
        except SceneFormatError:
            raise
        except ValueError as exc:
            raise reader.error(str(exc), token) from exc


def _read_finishes(reader: _TokenReader, scene: SceneManager) -> None:
    for _ in range(reader.count("finishes")):
        start = reader.peek("finish")
        ka, kd, ks, alpha, kr, kt, ior = reader.numbers(7, "finish coefficient")
        try:
            scene.add_finish(
                ambient=ka,
                diffuse=kd,
                specular=ks,
                shininess=alpha,
                reflectivity=kr,
                transmissivity=kt,
                ior=ior,
            )
        except ValueError as exc:
            raise reader.error(str(exc), start) from exc


def _read_shape(reader: _TokenReader, scene: SceneManager) -> tuple[int, int, Shape]:
    """Read one object record: pigment, finish and shape.

    CSG children carry their own pigment and finish indices. Only the
    top-level ones shade the object, but all of them must be in range.
    """
    pigment = reader.integer("pigment index")
    finish = reader.integer("finish index")
    token = reader.next("object type")

    if token.text == "sphere":
        center = reader.vector("sphere center")
        radius = reader.number("sphere radius")
        if radius < 0.0:
            raise reader.error(f"sphere radius must be non-negative, got {radius}", token)
        return pigment, finish, SphereInfo(center=center, radius=radius)

    if token.text == "polyhedron":
        n_faces = reader.count("faces")
        if n_faces == 0:
            raise reader.error("polyhedron needs at least one face", token)
        planes = [reader.numbers(4, "plane coefficient") for _ in range(n_faces)]
        return pigment, finish, PolyhedronInfo(planes=planes)

    if token.text == "quadric":
        return pigment, finish, QuadricInfo(coefficients=reader.numbers(10, "quadric coefficient"))

    if token.text == "csg":
        n_children = reader.count("CSG children")
        if n_children == 0:
            raise reader.error("CSG object needs at least one child", token)
        children = []
        for _ in range(n_children):
            op_token = reader.next("CSG operator")
            if op_token.text not in CSG_OPERATORS:
                raise reader.error(
                    f"expected CSG operator '+' or '-', got {op_token.text!r}", op_token
                )
            child_start = reader.peek("CSG child")
            child_pigment, child_finish, child = _read_shape(reader, scene)
            try:
                scene.check_material_indices(child_pigment, child_finish)
            except ValueError as exc:
                raise reader.error(f"CSG child: {exc}", child_start) from exc
            children.append(CSGChild(operation=CSG_OPERATORS[op_token.text], shape=child))
        return pigment, finish, CSGInfo(children=children)

    raise reader.error(f"unknown object type {token.text!r}", token)


def _read_objects(reader: _TokenReader, scene: SceneManager) -> None:
    for _ in range(reader.count("objects")):
        start = reader.peek("object")
        pigment, finish, shape = _read_shape(reader, scene)
        try:
            scene.add_object(shape, pigment, finish)
        except ValueError as exc:
            raise reader.error(str(exc), start) from exc


def load_scene(path: str | Path, scene: SceneManager | None = None) -> SceneManager:
    """Load a scene file into a SceneManager.

    Args:
        path: Scene file path. Relative texture paths that do not exist as
            given are looked up next to the scene file.
        scene: Manager to fill; it is cleared first. A new one is created
            when None.

    Returns:
        The filled SceneManager.

    Raises:
        FileNotFoundError: If the scene file does not exist.
        OSError: If the scene file cannot be read.
        SceneFormatError: If the content is malformed, an index is out of
            range or the scene has no lights.
        RuntimeError: If a scene table overflows.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")

    if scene is None:
        scene = SceneManager()
    else:
        scene.clear()

    reader = _TokenReader(_tokenize(text), path)
    _read_camera(reader, scene)
    _read_lights(reader, scene)
    _read_pigments(reader, scene, path.parent)
    _read_finishes(reader, scene)
    _read_objects(reader, scene)

    if reader.remaining > 0:
        logger.warning("Ignoring %d trailing tokens in %s", reader.remaining, path)

    try:
        scene.validate()
    except ValueError as exc:
        raise SceneFormatError(str(exc), path) from exc

    logger.info(
        "Loaded %s: %d lights, %d pigments, %d finishes, %d objects",
        path,
        scene.get_light_count(),
        scene.get_pigment_count(),
        scene.get_finish_count(),
        scene.get_object_count(),
    )
    return scene
