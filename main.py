from microbatch import *

__prog__ = "images"


class Images(Batch):
    def resize(self, width: int = 640, height: int = 480):
        """resize every pending image"""
        self.context.logger.info("resize %dx%d", width, height)

    @command("purge", descr="delete cached thumbnails")
    async def purge(self, older=Option("o", type=int, default=30, descr="days"), dry_run: bool = False):
        pass


if __name__ == '__main__':
    main([Images], colorful=True)
