from locust import HttpUser, task, between
import random


class ApiUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        # Register and log in a user for this simulated client
        n = random.randint(1, 1_000_000)
        creds = {"email": f"user_{n}@example.com", "password": "loadtest"}
        self.client.post("/auth/register", json={
            **creds,
            "username": f"user_{n}",
            "address": "1 Load St",
            "phone": "555-0000",
            "answer": "blue",
        })
        r = self.client.post("/auth/login", json=creds)
        self.headers = {"Authorization": f"Bearer {r.json()['token']}"} if r.status_code == 200 else None

    @task(3)
    def place_order(self):
        if not self.headers:
            return
        cart = [{"price": round(random.random() * 20, 2), "title": "item"} for _ in range(random.randint(1, 4))]
        self.client.post("/food/placeorder", json={"cart": cart}, headers=self.headers)

    @task(2)
    def browse_foods(self):
        self.client.get("/food/getall")

    @task(1)
    def my_orders(self):
        if self.headers:
            self.client.get("/food/orders", headers=self.headers)
