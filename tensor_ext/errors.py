class TensorLibraryError(RuntimeError):
    """Base error raised by the tensor library"""


class ContextError(TensorLibraryError):
    """Unknown context key, or a handle used outside its owning context"""


class ReleaseError(TensorLibraryError):
    """Handle released twice or never owned by this library"""
