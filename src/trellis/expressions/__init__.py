from trellis.expressions.evaluator import SAFE_BUILTINS, ExpressionEvaluator

__all__ = ["SAFE_BUILTINS", "ExpressionEvaluator"]
