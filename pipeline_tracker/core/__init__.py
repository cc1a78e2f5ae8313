"""Domain model, validation and the pipeline tracker."""
