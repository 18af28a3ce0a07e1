"""Frame acquisition and the render loop."""
