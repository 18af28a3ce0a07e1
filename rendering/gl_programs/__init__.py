"""GL object helpers for the pass pipeline.

Compilation, intermediate render targets, textures, the shared quad and
auxiliary overlay samplers. None of these own a GL context; callers make
one current before using them.
"""

from rendering.gl_programs.shader_compiler import ShaderCompiler, ShaderPass, UNUSED_UNIFORM
from rendering.gl_programs.render_targets import RenderTarget, RenderTargetPool
from rendering.gl_programs.texture_manager import BaseTexture
from rendering.gl_programs.geometry_manager import FullscreenQuad
from rendering.gl_programs.overlay_textures import ImageOverlay, NoiseOverlay, OverlayTextureSet

__all__ = [
    "ShaderCompiler",
    "ShaderPass",
    "UNUSED_UNIFORM",
    "RenderTarget",
    "RenderTargetPool",
    "BaseTexture",
    "FullscreenQuad",
    "ImageOverlay",
    "NoiseOverlay",
    "OverlayTextureSet",
]
