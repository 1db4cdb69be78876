"""Line-oriented command shell."""
