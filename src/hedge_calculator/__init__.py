"""Exit and hedge strategy calculator for binary prediction-market positions."""
