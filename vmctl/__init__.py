"""vmctl: provision and tear down single cloud compute instances."""
