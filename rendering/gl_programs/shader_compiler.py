"""Shader compilation for the pass chain.

Every pass is a single GLSL file that can branch on ``VERTEX`` and
``FRAGMENT``. The compiler injects a fixed version header and stage define,
links the program and resolves the recognized uniforms into a sparse
name -> location table. Uniforms a shader does not declare resolve to
``UNUSED_UNIFORM`` and are skipped at bind time.

Files that only supply a fragment stage are paired with a built-in
full-screen-quad vertex stage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import re
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Sequence, Union

from core.errors import CompileError, ConfigError, LinkError, ShaderGlassError
from core.logging.logger import get_logger
from core.logging.tags import TAG_GL, TAG_PIPELINE

logger = get_logger(__name__)

# PyOpenGL import with graceful fallback
try:
    from OpenGL import GL as gl
except ImportError:
    gl = None  # type: ignore

UNUSED_UNIFORM = -1

GLSL_HEADER = "#version 330 core\n"
VERTEX_DEFINE = "#define VERTEX\n"
FRAGMENT_DEFINE = "#define FRAGMENT\n"

RECOGNIZED_UNIFORMS = (
    "Texture",
    "InputSize",
    "OutputSize",
    "TextureSize",
    "FrameCount",
    "FrameDirection",
    "MVPMatrix",
    "Time",
    "WindowOpacity",
    "OverlayTexture",
    "NoiseTexture",
)

ATTRIBUTE_LOCATIONS = (
    (0, "VertexCoord"),
    (1, "TexCoord"),
    (2, "COLOR"),
)

_VERSION_LINE_RE = re.compile(r"^[ \t]*#[ \t]*version\b.*$\n?", re.MULTILINE)
_VERTEX_BRANCH_RE = re.compile(r"\bVERTEX\b")

BUILTIN_VERTEX_SOURCE = """
layout(location = 0) in vec4 VertexCoord;
layout(location = 1) in vec2 TexCoord;
out vec2 TEX0;
uniform mat4 MVPMatrix;
void main() {
    gl_Position = MVPMatrix * VertexCoord;
    TEX0 = TexCoord;
}
"""

DEFAULT_PASS_NAME = "default"

# Scanline tint applied when no shaders are configured.
DEFAULT_SHADER_SOURCE = """
#if defined(VERTEX)
layout(location = 0) in vec4 VertexCoord;
layout(location = 1) in vec2 TexCoord;
out vec2 TEX0;
uniform mat4 MVPMatrix;
void main() {
    gl_Position = MVPMatrix * VertexCoord;
    TEX0 = TexCoord;
}
#elif defined(FRAGMENT)
in vec2 TEX0;
out vec4 FragColor;
uniform sampler2D Texture;
uniform vec2 InputSize;
uniform float WindowOpacity;
void main() {
    vec2 uv = TEX0;
    vec3 base = texture(Texture, uv).rgb;
    vec3 lines = vec3(sin(uv.y * InputSize.y * 3.14159));
    float alpha = 0.75 * WindowOpacity;
    FragColor = vec4(base * (0.8 + 0.2 * lines), alpha);
}
#endif
"""


def _as_text(log: Union[bytes, str, None]) -> str:
    if log is None:
        return ""
    if isinstance(log, bytes):
        return log.decode("utf-8", errors="replace").strip()
    return str(log).strip()


@dataclass(frozen=True)
class ShaderPass:
    """One linked pass: program handle plus its resolved uniform table."""

    name: str
    program: int
    uniforms: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))

    def location(self, uniform: str) -> int:
        return self.uniforms.get(uniform, UNUSED_UNIFORM)

    def declares(self, uniform: str) -> bool:
        return self.location(uniform) != UNUSED_UNIFORM


def preprocess(source: str, stage_define: str) -> str:
    """Strip any ``#version`` lines and prepend the fixed header and define."""
    body = _VERSION_LINE_RE.sub("", source)
    return GLSL_HEADER + stage_define + body


def has_vertex_branch(source: str) -> bool:
    """True when the shader text supplies its own vertex stage."""
    return _VERTEX_BRANCH_RE.search(source) is not None


class ShaderCompiler:
    """Builds ShaderPass objects from GLSL text.

    The compiler does not own the passes it returns; callers release them
    with destroy_pass() / destroy_passes().
    """

    def compile_source(self, source: str, name: str = "inline") -> ShaderPass:
        """Compile and link ``source``.

        Raises:
            CompileError: a stage failed to compile
            LinkError: the program failed to link
        """
        if gl is None:
            raise ShaderGlassError("PyOpenGL not available")

        if has_vertex_branch(source):
            vertex_text = preprocess(source, VERTEX_DEFINE)
        else:
            vertex_text = GLSL_HEADER + VERTEX_DEFINE + BUILTIN_VERTEX_SOURCE
            logger.debug("%s %s has no vertex branch, using built-in vertex stage", TAG_GL, name)
        fragment_text = preprocess(source, FRAGMENT_DEFINE)

        vs = self._compile_stage(vertex_text, gl.GL_VERTEX_SHADER, name)
        try:
            fs = self._compile_stage(fragment_text, gl.GL_FRAGMENT_SHADER, name)
        except CompileError:
            gl.glDeleteShader(vs)
            raise

        program = gl.glCreateProgram()
        gl.glAttachShader(program, vs)
        gl.glAttachShader(program, fs)
        for location, attribute in ATTRIBUTE_LOCATIONS:
            gl.glBindAttribLocation(program, location, attribute)
        gl.glLinkProgram(program)

        # Shaders can be detached after linking
        gl.glDetachShader(program, vs)
        gl.glDetachShader(program, fs)
        gl.glDeleteShader(vs)
        gl.glDeleteShader(fs)

        link_status = gl.glGetProgramiv(program, gl.GL_LINK_STATUS)
        if not link_status:
            info_log = _as_text(gl.glGetProgramInfoLog(program))
            gl.glDeleteProgram(program)
            raise LinkError(info_log, pass_name=name)

        uniforms = {}
        for uniform in RECOGNIZED_UNIFORMS:
            location = int(gl.glGetUniformLocation(program, uniform))
            if location != UNUSED_UNIFORM:
                uniforms[uniform] = location

        logger.debug(
            "%s %s program created: %d (uniforms: %s)",
            TAG_GL, name, program, ", ".join(sorted(uniforms)) or "none",
        )
        return ShaderPass(name=name, program=int(program), uniforms=MappingProxyType(uniforms))

    def _compile_stage(self, text: str, shader_type: int, name: str) -> int:
        shader = gl.glCreateShader(shader_type)
        gl.glShaderSource(shader, text)
        gl.glCompileShader(shader)

        compile_status = gl.glGetShaderiv(shader, gl.GL_COMPILE_STATUS)
        if not compile_status:
            info_log = _as_text(gl.glGetShaderInfoLog(shader))
            gl.glDeleteShader(shader)
            stage = "vertex" if shader_type == gl.GL_VERTEX_SHADER else "fragment"
            raise CompileError(stage, info_log, pass_name=name)

        return int(shader)

    def compile_file(self, path: Union[str, Path]) -> ShaderPass:
        """Read a UTF-8 shader file and compile it; the pass is named after the file stem."""
        shader_path = Path(path)
        try:
            source = shader_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Failed to open shader: {shader_path} ({e})") from e
        return self.compile_source(source, name=shader_path.stem)

    def default_pass(self) -> ShaderPass:
        return self.compile_source(DEFAULT_SHADER_SOURCE, name=DEFAULT_PASS_NAME)

    def build_pipeline(self, paths: Sequence[Union[str, Path]]) -> List[ShaderPass]:
        """Compile every pass in order, or the default pass when ``paths`` is empty.

        A failure on any pass releases the passes already built and re-raises,
        so callers never see a partial pipeline.
        """
        if not paths:
            logger.info("%s No shaders configured, using built-in default pass", TAG_PIPELINE)
            return [self.default_pass()]

        passes: List[ShaderPass] = []
        try:
            for path in paths:
                passes.append(self.compile_file(path))
        except ShaderGlassError:
            logger.error("%s Pass %d of %d failed, releasing %d built pass(es)",
                         TAG_PIPELINE, len(passes) + 1, len(paths), len(passes))
            self.destroy_passes(passes)
            raise

        logger.info("%s Built %d pass(es): %s", TAG_PIPELINE, len(passes),
                    " -> ".join(p.name for p in passes))
        return passes

    @staticmethod
    def destroy_pass(shader_pass: Optional[ShaderPass]) -> None:
        if shader_pass is None or gl is None:
            return
        gl.glDeleteProgram(shader_pass.program)
        logger.debug("%s %s program deleted: %d", TAG_GL, shader_pass.name, shader_pass.program)

    @classmethod
    def destroy_passes(cls, passes: Iterable[ShaderPass]) -> None:
        for shader_pass in passes:
            cls.destroy_pass(shader_pass)


__all__ = [
    "ATTRIBUTE_LOCATIONS",
    "DEFAULT_PASS_NAME",
    "DEFAULT_SHADER_SOURCE",
    "RECOGNIZED_UNIFORMS",
    "UNUSED_UNIFORM",
    "ShaderCompiler",
    "ShaderPass",
    "has_vertex_branch",
    "preprocess",
]
