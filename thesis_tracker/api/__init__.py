"""HTTP transport for the thesis tracker."""
