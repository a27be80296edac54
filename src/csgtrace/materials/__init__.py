"""Materials module: pigments, finishes and textures.

Components:
    pigment: Solid, checker and texture-mapped surface colors
    finish: Phong reflectance coefficients, reflectivity and transmission
    texture: PPM texture loading for texture-mapped pigments

``pigment`` and ``finish`` declare Taichi fields and must be imported after
``ti.init()``; only the texture loader is exported here.
"""

from .texture import SUPPORTED_MAGIC, load_texture

__all__ = [
    "SUPPORTED_MAGIC",
    "load_texture",
]
