from utils.curlec import CurlecClient


def open_order(payment, client=None):
	"""Open a gateway order for a pending payment and bind its id to the payment."""
	client = client or CurlecClient()
	result = client.create_order(payment)
	payment.attach_gateway_order(result["external_id"])
	return result


def open_subscription(payment, plan, interval="monthly", client=None):
	"""Create the gateway plan and a subscription on it, binding the subscription id."""
	client = client or CurlecClient()
	gateway_plan = client.create_subscription_plan(plan, interval)
	subscription = client.create_subscription(payment, gateway_plan["id"])
	payment.attach_gateway_order(subscription["id"])
	return subscription
