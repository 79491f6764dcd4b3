"""
microbatch dispatcher: run one bound invocation, exactly once.

Sequence
    instance = descriptor.factory / dispatcher factory / handler()
    instance.context = context
    await interceptor.before(context)
    await method(*arguments)            → interceptor.after(context)
                        (raises)        → interceptor.error(context, exception)
                                          raise InvocationError from exception
                                          (Exception only; other
                                          BaseExceptions are re-raised)

Every hook and the command method may be plain functions or coroutines; the
dispatcher settles each result at one place (_settle), so synchronous and
asynchronous handlers look the same to the rest of the engine.
"""
import inspect
import logging
import time

from .faults import *
from .utils import *

logger = logging.getLogger(__name__)


async def _settle(result, /):
    if inspect.isawaitable(result):
        return await result
    return result


class Interceptor:
    """
    Hooks around the command method; every hook is optional and may be async.
    """

    def before(self, context, /):
        pass

    def after(self, context, /):
        pass

    def error(self, context, exception, /):
        pass


class CompositeInterceptor(Interceptor):
    """
    Chain several interceptors: before in order, after/error in reverse order.
    """

    def __init__(self, *interceptors):
        for interceptor in interceptors:
            if not isinstance(interceptor, Interceptor):
                raise TypeError("CompositeInterceptor() arguments must be interceptors")
        self.interceptors = interceptors

    async def before(self, context, /):
        for interceptor in self.interceptors:
            await _settle(interceptor.before(context))

    async def after(self, context, /):
        for interceptor in reversed(self.interceptors):
            await _settle(interceptor.after(context))

    async def error(self, context, exception, /):
        for interceptor in reversed(self.interceptors):
            await _settle(interceptor.error(context, exception))


class Dispatcher:
    """
    Single-use invoker of bound commands.

    Parameters
    - factory: callable(handler) → instance, used when the descriptor has none.
    - interceptor: Interceptor whose hooks surround the command method.
    """

    def __init__(self, factory=Unset, interceptor=Unset):
        if factory is not Unset and not callable(factory):
            raise TypeError("Dispatcher() 'factory' must be callable")
        if interceptor is not Unset and not isinstance(interceptor, Interceptor):
            raise TypeError("Dispatcher() 'interceptor' must be an interceptor")
        self.factory = coalesce(factory, lambda handler: handler())
        self.interceptor = coalesce(interceptor, Interceptor())
        self.dispatched = False

    def instantiate(self, descriptor, /):
        """
        Obtain the handler instance for `descriptor`.
        """
        return (descriptor.factory or self.factory)(descriptor.handler)

    async def __call__(self, invocation, context, /):
        """
        Run `invocation` and return the command's result.

        Raises
        - RuntimeError when the dispatcher already ran.
        - InvocationError (chained) when the command method raised.
        - the original exception when it is not an Exception subclass
          (KeyboardInterrupt, CancelledError), after the error hook ran.
        """
        if self.dispatched:
            raise RuntimeError("a dispatcher runs a single invocation")
        self.dispatched = True

        descriptor = invocation.descriptor
        instance = self.instantiate(descriptor)
        instance.context = context

        await _settle(self.interceptor.before(context))
        started = time.perf_counter()
        logger.info("dispatch.start command=%s", descriptor.qualname)
        try:
            result = await _settle(invocation(instance))
        except BaseException as exception:
            logger.info(
                "dispatch.failed command=%s error=%s elapsed=%.3fs",
                descriptor.qualname, type(exception).__name__, time.perf_counter() - started,
            )
            await _settle(self.interceptor.error(context, exception))
            if not isinstance(exception, Exception):
                # KeyboardInterrupt, CancelledError, SystemExit pass through
                raise
            raise InvocationError(
                "%s failed: %s" % (descriptor.name, str(exception) or type(exception).__name__),
                title="command failed",
                code=FaultCode.INVOCATION_FAILED,
                command=descriptor.name,
                hint="the command raised %s" % type(exception).__name__,
                docs=getdoc(FaultCode.INVOCATION_FAILED),
            ) from exception

        logger.info("dispatch.complete command=%s elapsed=%.3fs", descriptor.qualname, time.perf_counter() - started)
        await _settle(self.interceptor.after(context))
        return result


__all__ = (
    "Interceptor",
    "CompositeInterceptor",
    "Dispatcher",
)
