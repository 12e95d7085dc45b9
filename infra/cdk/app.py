import aws_cdk as cdk
from stacks import FeedStack

app = cdk.App()
stage = app.node.try_get_context("stage") or "dev"
FeedStack(app, f"TrendFeedStack-{stage}", stage=stage,
    env=cdk.Environment(
        account=app.node.try_get_context("account"),
        region=app.node.try_get_context("region") or "ap-south-1"
    )
)
app.synth()
