"""Contracts, schemas and controllers shared by the test suite"""

import marshmallow as ma

from covenant import Operation, RPCError, implement, implements


class NameSchema(ma.Schema):
    name = ma.fields.String(required=True)


class GreetingSchema(ma.Schema):
    greeting = ma.fields.String(required=True)


class DetailedGreetingSchema(ma.Schema):
    status = ma.fields.Integer(required=True)
    result = ma.fields.Nested(GreetingSchema, required=True)


hello = Operation(
    path="/hello",
    method="POST",
    input_schema=NameSchema,
    output_schema=GreetingSchema,
)

hello_detailed = Operation(
    path="/hello",
    method="POST",
    output_structure="detailed",
    input_schema=NameSchema,
    output_schema=DetailedGreetingSchema,
)

# Output structure left to the module configuration
hello_enveloped = Operation(
    path="/hello",
    method="POST",
    input_schema=NameSchema,
    output_schema=DetailedGreetingSchema,
)

test_contract = {"hello": hello}
test_detailed_contract = {"hello": hello_detailed}
test_enveloped_contract = {"hello": hello_enveloped}

# Incremented by every greeting handler, to observe whether handlers ran
greeting_calls = []


async def greet(call):
    greeting_calls.append(call.input)
    return {"greeting": f"Hello, {call.input['name']}!"}


async def greet_detailed(call):
    greeting_calls.append(call.input)
    return {
        "status": 201,
        "result": {"greeting": f"Hello, {call.input['name']}!"},
    }


class RawHelloController:
    @implements(test_contract["hello"])
    def hello(self):
        return implement(test_contract["hello"]).handler(greet)


class DetailedHelloController:
    @implements(test_contract["hello"])
    def hello(self):
        return implement(test_detailed_contract["hello"]).handler(greet_detailed)


class EnvelopedHelloController:
    @implements(test_enveloped_contract["hello"])
    def hello(self):
        return implement(test_enveloped_contract["hello"]).handler(greet_detailed)


class PlanetSchema(ma.Schema):
    id = ma.fields.Integer(required=True)
    name = ma.fields.String(required=True)


class PlanetIdSchema(ma.Schema):
    id = ma.fields.Integer(required=True)


class ListPlanetsSchema(ma.Schema):
    limit = ma.fields.Integer(load_default=10)
    names = ma.fields.List(ma.fields.String(), load_default=list)


class CreatePlanetSchema(ma.Schema):
    name = ma.fields.String(required=True, validate=ma.validate.Length(min=1))


class UpdatePlanetSchema(ma.Schema):
    id = ma.fields.Integer(required=True)
    name = ma.fields.String(required=True)


planet_contract = {
    "planet": {
        "list": Operation(method="GET", path="/planets", input_schema=ListPlanetsSchema),
        "find": Operation(
            method="GET",
            path="/planets/{id}",
            input_schema=PlanetIdSchema,
            output_schema=PlanetSchema,
        ),
        "create": Operation(
            path="/planets",
            input_schema=CreatePlanetSchema,
            output_schema=PlanetSchema,
            success_status=201,
        ),
        "update": Operation(
            method="PUT",
            path="/planets/{id}",
            input_schema=UpdatePlanetSchema,
            output_structure="detailed",
        ),
        "remove": Operation(
            method="DELETE",
            path="/planets/{id}",
            input_schema=PlanetIdSchema,
            success_status=204,
        ),
    },
    "ping": Operation(),
}

PLANETS = {}


def reset_planets():
    PLANETS.clear()
    PLANETS.update({1: {"id": 1, "name": "Earth"}, 2: {"id": 2, "name": "Mars"}})


class PlanetController:
    @implements("planet.list")
    def list(self):
        return implement(planet_contract["planet"]["list"]).handler(self.list_planets)

    @implements("planet.find")
    def find(self):
        return implement(planet_contract["planet"]["find"]).handler(self.find_planet)

    @implements("planet.create")
    def create(self):
        return implement(planet_contract["planet"]["create"]).handler(
            self.create_planet
        )

    @implements("planet.update")
    def update(self):
        return implement(planet_contract["planet"]["update"]).handler(
            self.update_planet
        )

    @implements("planet.remove")
    def remove(self):
        return implement(planet_contract["planet"]["remove"]).handler(
            self.remove_planet
        )

    @implements("ping")
    def ping(self):
        return implement(planet_contract["ping"]).handler(lambda call: "pong")

    async def list_planets(self, call):
        planets = sorted(PLANETS.values(), key=lambda planet: planet["id"])
        if call.input["names"]:
            planets = [p for p in planets if p["name"] in call.input["names"]]
        return planets[: call.input["limit"]]

    async def find_planet(self, call):
        planet = PLANETS.get(call.input["id"])
        if planet is None:
            raise RPCError("NOT_FOUND", message=f"Planet {call.input['id']} not found")
        return planet

    async def create_planet(self, call):
        planet = {"id": max(PLANETS, default=0) + 1, "name": call.input["name"]}
        PLANETS[planet["id"]] = planet
        return planet

    async def update_planet(self, call):
        if call.input["id"] not in PLANETS:
            return {"status": 404, "result": {"message": "No such planet"}}

        PLANETS[call.input["id"]]["name"] = call.input["name"]
        return {
            "status": 200,
            "result": PLANETS[call.input["id"]],
            "headers": {"X-Planet-Version": "2"},
        }

    def remove_planet(self, call):
        PLANETS.pop(call.input["id"], None)
