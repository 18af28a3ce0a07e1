"""
Tests for the multi-pass PipelineRenderer.

Tests cover:
- Intermediate target count and presentation target per pipeline length
- Input/output size chaining and per-pass uniforms
- Resize atomicity
- Pixel round trip through two copy passes
- State machine and teardown
"""
import numpy as np
import pytest

from tests._shaders import COPY_SHADER, NO_UNIFORM_SHADER, OVERLAY_SHADER, broken_shader, BROKEN_MARKER


def _solid(width, height, rgba):
    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[:, :] = rgba
    return pixels


def _upload(width, height, rgba=(255, 0, 0, 255)):
    from rendering.gl_programs.texture_manager import BaseTexture

    texture = BaseTexture()
    texture.upload(_solid(width, height, rgba))
    return texture


def _build(fake_gl, write_shader, count, width=64, height=64, **kwargs):
    from rendering.pipeline_renderer import PipelineRenderer

    paths = [write_shader(f"pass{i}", COPY_SHADER) for i in range(count)]
    fake_gl.set_default_framebuffer(width, height)
    return PipelineRenderer.from_paths(paths, width, height, **kwargs)


class TestTargetAllocation:
    """Tests for intermediate target bookkeeping."""

    @pytest.mark.parametrize("count", [1, 2, 3, 4])
    def test_intermediate_targets_and_final_stage(self, fake_gl, write_shader, count):
        """Test N passes hold N-1 targets and only the last writes to the screen."""
        renderer = _build(fake_gl, write_shader, count)
        source = _upload(32, 32)

        renderer.render(source.texture_id, 32, 32, frame_count=0, opacity=1.0)

        assert len(renderer.pool) == count - 1
        assert len(fake_gl.draws) == count
        assert fake_gl.draws[-1].framebuffer == 0
        intermediate = {t.framebuffer for t in renderer.pool.targets}
        assert all(d.framebuffer in intermediate for d in fake_gl.draws[:-1])
        assert fake_gl.feedback_loops == []

    def test_single_stage_never_touches_framebuffers(self, fake_gl, write_shader):
        """Test a one-pass pipeline reads the base texture and writes straight to the screen."""
        renderer = _build(fake_gl, write_shader, 1)
        source = _upload(32, 32)

        renderer.render(source.texture_id, 32, 32, frame_count=0, opacity=1.0)
        renderer.resize(128, 96)

        assert fake_gl.calls_named("glGenFramebuffers") == []
        assert [args[0] for args in fake_gl.calls_named("glBindFramebuffer")] == [0]
        assert fake_gl.draws[0].input_texture == source.texture_id

    def test_each_stage_reads_previous_output(self, fake_gl, write_shader):
        """Test stage i>0 samples the target stage i-1 wrote."""
        renderer = _build(fake_gl, write_shader, 3)
        source = _upload(32, 32)

        renderer.render(source.texture_id, 32, 32, frame_count=0, opacity=1.0)

        targets = renderer.pool.targets
        assert fake_gl.draws[0].input_texture == source.texture_id
        assert fake_gl.draws[0].framebuffer == targets[0].framebuffer
        assert fake_gl.draws[1].input_texture == targets[0].texture
        assert fake_gl.draws[1].framebuffer == targets[1].framebuffer
        assert fake_gl.draws[2].input_texture == targets[1].texture

    def test_custom_presentation_framebuffer(self, fake_gl, write_shader):
        """Test the last pass honours a windowing layer's default FBO."""
        from rendering.gl_programs.render_targets import RenderTargetPool

        window_fbo = RenderTargetPool().ensure(64, 64, 1)[0].framebuffer
        renderer = _build(fake_gl, write_shader, 2, presentation_fbo=window_fbo)
        source = _upload(64, 64)

        renderer.render(source.texture_id, 64, 64, frame_count=0, opacity=1.0)

        assert fake_gl.draws[-1].framebuffer == window_fbo

    def test_draw_uses_six_vertex_triangles(self, fake_gl, write_shader):
        """Test every stage draws the non-indexed six-vertex quad."""
        renderer = _build(fake_gl, write_shader, 2)
        source = _upload(16, 16)

        renderer.render(source.texture_id, 16, 16, frame_count=0, opacity=1.0)

        assert all(d.mode == fake_gl.GL_TRIANGLES and d.count == 6 for d in fake_gl.draws)
        assert all(d.viewport == (0, 0, 64, 64) for d in fake_gl.draws)


class TestUniforms:
    """Tests for per-pass uniform values."""

    def test_size_chain(self, fake_gl, write_shader):
        """Test stage 0 sees the source size and later stages the output size."""
        renderer = _build(fake_gl, write_shader, 3, width=200, height=100)
        source = _upload(800, 600)

        renderer.render(source.texture_id, 800, 600, frame_count=0, opacity=1.0)

        first, second, third = (d.uniforms for d in fake_gl.draws)
        assert first["InputSize"] == (800.0, 600.0)
        assert first["TextureSize"] == (800.0, 600.0)
        assert second["InputSize"] == (200.0, 100.0)
        assert third["InputSize"] == (200.0, 100.0)
        assert all(u["OutputSize"] == (200.0, 100.0) for u in (first, second, third))

    def test_constant_and_frame_uniforms(self, fake_gl, write_shader):
        """Test frame counter, direction, sampler, MVP, time and opacity."""
        renderer = _build(fake_gl, write_shader, 2)
        source = _upload(16, 16)

        renderer.render(source.texture_id, 16, 16, frame_count=42, opacity=0.25, time_seconds=1.5)

        for draw in fake_gl.draws:
            uniforms = draw.uniforms
            assert uniforms["Texture"] == 0
            assert uniforms["FrameCount"] == 42
            assert uniforms["FrameDirection"] == 1
            assert uniforms["WindowOpacity"] == pytest.approx(0.25)
            assert uniforms["Time"] == pytest.approx(1.5)
            np.testing.assert_array_equal(uniforms["MVPMatrix"], np.identity(4, dtype=np.float32))

    def test_shader_without_uniforms_draws(self, fake_gl, write_shader):
        """Test undeclared uniforms are skipped and the pass still draws."""
        from rendering.pipeline_renderer import PipelineRenderer

        path = write_shader("plain", NO_UNIFORM_SHADER)
        renderer = PipelineRenderer.from_paths([path], 64, 64)
        source = _upload(16, 16)

        renderer.render(source.texture_id, 16, 16, frame_count=0, opacity=1.0)

        assert len(fake_gl.draws) == 1
        assert set(fake_gl.draws[0].uniforms) == {"MVPMatrix"}

    def test_frame_context_returned(self, fake_gl, write_shader):
        """Test render reports the values it bound."""
        renderer = _build(fake_gl, write_shader, 1, width=64, height=48)
        source = _upload(10, 20)

        ctx = renderer.render(source.texture_id, 10, 20, frame_count=7, opacity=0.5)

        assert (ctx.output_width, ctx.output_height) == (64, 48)
        assert (ctx.input_width, ctx.input_height) == (10, 20)
        assert ctx.frame_count == 7
        assert renderer.last_frame == ctx
        assert [b.input_size for b in renderer.last_bindings] == [(10, 20)]


class TestOverlays:
    """Tests for auxiliary sampler binding."""

    def test_noise_bound_only_where_declared(self, fake_gl, write_shader):
        """Test the noise texture goes to unit 1 for passes that sample it."""
        from rendering.gl_programs.overlay_textures import NoiseOverlay, OverlayTextureSet
        from rendering.pipeline_renderer import PipelineRenderer

        overlays = OverlayTextureSet([NoiseOverlay(size=8)])
        paths = [write_shader("grain", OVERLAY_SHADER), write_shader("copy", COPY_SHADER)]
        renderer = PipelineRenderer.from_paths(paths, 64, 64, overlays=overlays)
        source = _upload(16, 16)

        renderer.render(source.texture_id, 16, 16, frame_count=0, opacity=1.0)

        noise_tex = overlays.overlays[0].texture_id
        grain, copy = fake_gl.draws
        assert grain.textures[1] == noise_tex
        assert grain.textures[0] == source.texture_id
        assert grain.uniforms["NoiseTexture"] == 1
        assert "NoiseTexture" not in copy.uniforms


class TestResize:
    """Tests for PipelineRenderer.resize."""

    def test_resize_reallocates_at_exact_size(self, fake_gl, write_shader):
        """Test every intermediate target matches the new size."""
        renderer = _build(fake_gl, write_shader, 3, width=800, height=600)

        assert renderer.resize(1920, 1080) is True

        assert renderer.size == (1920, 1080)
        assert all((t.width, t.height) == (1920, 1080) for t in renderer.pool.targets)
        assert len(renderer.pool) == 2

    def test_same_size_is_noop(self, fake_gl, write_shader):
        """Test resizing to the current size does nothing."""
        renderer = _build(fake_gl, write_shader, 2)
        generated = len(fake_gl.calls_named("glGenFramebuffers"))

        assert renderer.resize(64, 64) is False
        assert len(fake_gl.calls_named("glGenFramebuffers")) == generated

    def test_failed_resize_keeps_last_good_size(self, fake_gl, write_shader):
        """Test a failed reallocation leaves targets and size consistent."""
        from core.errors import ResourceError

        renderer = _build(fake_gl, write_shader, 2, width=64, height=64)
        before = renderer.pool.targets
        fake_gl.incomplete_sizes.add((4096, 4096))

        with pytest.raises(ResourceError):
            renderer.resize(4096, 4096)

        assert renderer.size == (64, 64)
        assert renderer.pool.targets == before
        source = _upload(16, 16)
        renderer.render(source.texture_id, 16, 16, frame_count=0, opacity=1.0)
        assert all(d.viewport == (0, 0, 64, 64) for d in fake_gl.draws)

    def test_render_after_resize_uses_new_viewport(self, fake_gl, write_shader):
        """Test the viewport and OutputSize follow the resize."""
        renderer = _build(fake_gl, write_shader, 2)
        renderer.resize(128, 32)
        fake_gl.set_default_framebuffer(128, 32)
        source = _upload(16, 16)

        renderer.render(source.texture_id, 16, 16, frame_count=0, opacity=1.0)

        assert all(d.viewport == (0, 0, 128, 32) for d in fake_gl.draws)
        assert fake_gl.draws[1].uniforms["InputSize"] == (128.0, 32.0)


class TestRoundTrip:
    """Pixel-level checks through the fake's copy semantics."""

    def test_two_copy_passes_present_red(self, fake_gl, write_shader):
        """Test a red synthetic source survives two copy passes at 64x64."""
        from rendering.pipeline_renderer import PipelineRenderer
        from sources.pattern_source import SolidColorSource

        fake_gl.set_default_framebuffer(64, 64)
        paths = [write_shader("identity", COPY_SHADER), write_shader("copy", COPY_SHADER)]
        renderer = PipelineRenderer.from_paths(paths, 64, 64)
        frame = SolidColorSource(64, 64, (255, 0, 0, 255)).try_grab()
        source = _upload(64, 64)
        source.upload(frame.pixels)

        renderer.render(source.texture_id, frame.width, frame.height, frame_count=0, opacity=1.0)

        presented = fake_gl.framebuffer_pixels(0)
        assert presented.shape == (64, 64, 4)
        assert np.all(presented == np.array([255, 0, 0, 255], dtype=np.uint8))

    def test_orientation_preserved(self, fake_gl, write_shader):
        """Test the top row of the source is the top row on screen."""
        from rendering.gl_programs.texture_manager import BaseTexture
        from rendering.pipeline_renderer import PipelineRenderer

        fake_gl.set_default_framebuffer(4, 4)
        renderer = PipelineRenderer.from_paths([write_shader("copy", COPY_SHADER)] * 2, 4, 4)
        pixels = _solid(4, 4, (0, 0, 255, 255))
        pixels[0, :] = (0, 255, 0, 255)
        source = BaseTexture()
        source.upload(pixels)

        renderer.render(source.texture_id, 4, 4, frame_count=0, opacity=1.0)

        np.testing.assert_array_equal(fake_gl.framebuffer_pixels(0), pixels)


class TestLifecycle:
    """Tests for construction, state machine and teardown."""

    def test_default_pass_when_no_paths(self, fake_gl):
        """Test the built-in pass is used for an empty configuration."""
        from rendering.pipeline_renderer import PipelineRenderer

        renderer = PipelineRenderer.from_paths([], 64, 64)

        assert renderer.pass_count == 1
        assert renderer.passes[0].name == "default"
        assert len(renderer.pool) == 0

    def test_state_transitions(self, fake_gl, write_shader):
        """Test IDLE before the first frame and PRESENTED after each frame."""
        from rendering.pipeline_renderer import PipelineState, is_valid_pipeline_transition

        renderer = _build(fake_gl, write_shader, 2)
        source = _upload(8, 8)
        assert renderer.state is PipelineState.IDLE

        renderer.render(source.texture_id, 8, 8, frame_count=0, opacity=1.0)
        assert renderer.state is PipelineState.PRESENTED
        renderer.render(source.texture_id, 8, 8, frame_count=1, opacity=1.0)
        assert renderer.state is PipelineState.PRESENTED

        assert not is_valid_pipeline_transition(PipelineState.IDLE, PipelineState.PRESENTED)
        assert not is_valid_pipeline_transition(PipelineState.PRESENTED, PipelineState.BOUND)

    def test_render_before_initialize_rejected(self, fake_gl):
        """Test a renderer must be initialized before drawing."""
        from core.errors import ShaderGlassError
        from rendering.gl_programs.shader_compiler import ShaderCompiler
        from rendering.pipeline_renderer import PipelineRenderer

        renderer = PipelineRenderer([ShaderCompiler().default_pass()], 64, 64)

        with pytest.raises(ShaderGlassError):
            renderer.render(1, 8, 8, frame_count=0, opacity=1.0)

    def test_empty_pipeline_rejected(self, fake_gl):
        """Test a pipeline can never be empty."""
        from core.errors import ShaderGlassError
        from rendering.pipeline_renderer import PipelineRenderer

        with pytest.raises(ShaderGlassError):
            PipelineRenderer([], 64, 64)

    def test_construction_failure_leaves_nothing(self, fake_gl, write_shader):
        """Test a compile failure on a later pass frees everything."""
        from core.errors import CompileError
        from rendering.pipeline_renderer import PipelineRenderer

        fake_gl.compile_fail_marker = BROKEN_MARKER
        paths = [write_shader("good", COPY_SHADER), write_shader("bad", broken_shader())]

        with pytest.raises(CompileError):
            PipelineRenderer.from_paths(paths, 64, 64)

        assert fake_gl.live_programs() == set()
        assert fake_gl.live_framebuffers() == set()
        assert fake_gl.vertex_arrays == set()

    def test_target_failure_at_startup_frees_programs(self, fake_gl, write_shader):
        """Test an incomplete framebuffer during construction is fatal and clean."""
        from core.errors import ResourceError

        fake_gl.incomplete_sizes.add((64, 64))

        with pytest.raises(ResourceError):
            _build(fake_gl, write_shader, 3)

        assert fake_gl.live_programs() == set()
        assert fake_gl.live_framebuffers() == set()
        assert fake_gl.vertex_arrays == set()
        assert fake_gl.buffers == set()

    def test_cleanup_releases_all_gl_objects(self, fake_gl, write_shader):
        """Test cleanup deletes programs, targets and the quad."""
        renderer = _build(fake_gl, write_shader, 3)

        renderer.cleanup()

        assert fake_gl.live_programs() == set()
        assert fake_gl.live_framebuffers() == set()
        assert fake_gl.live_textures() == set()
        assert fake_gl.vertex_arrays == set()
        assert fake_gl.buffers == set()
